from linkhub_gateway.auth import AuthResult
from linkhub_gateway.profiles import format_price
from linkhub_gateway.tools import TOOLS, ToolExecutionEngine, build_quote_message

from conftest import ALICE_ID, BOB_ID


def _engine(store, reader):
    return ToolExecutionEngine(store=store, reader=reader)


def _inquirer(key_id="key_test"):
    return AuthResult(valid=True, permissions=frozenset({"read", "inquire"}), profile_id=ALICE_ID,
                      username="alice", key_id=key_id)


def _text(result):
    return result["content"][0]["text"]


def test_catalog_flags():
    assert set(TOOLS) == {"get_profile", "list_links", "list_services", "send_message", "request_quote"}
    for name in ("send_message", "request_quote"):
        assert TOOLS[name].auth_required and TOOLS[name].permission == "inquire"
    for name in ("get_profile", "list_links", "list_services"):
        assert not TOOLS[name].auth_required


def test_format_price():
    assert format_price("free", None) == "Free"
    assert format_price("fixed", 450, "USD") == "$450"
    assert format_price("hourly", 150, "USD") == "$150/hr"
    assert format_price("custom", None) == "Custom pricing"
    assert format_price("contact", None) == "Contact for pricing"
    assert format_price("fixed", None) == "Contact for pricing"


def test_get_profile(seeded_store, reader):
    result = _engine(seeded_store, reader).execute("get_profile", {}, None, "alice")
    assert "isError" not in result
    assert "Alice Example" in _text(result)
    assert "Designer in Lisbon" in _text(result)

    data = result["structuredContent"]
    assert data["stats"] == {"links": 2, "social_accounts": 2, "services": 2}
    assert data["avatar_url"].endswith("/avatars/alice.png")
    assert data["avatar_url"].startswith("https://")


def test_list_links_only_active_sorted(seeded_store, reader):
    result = _engine(seeded_store, reader).execute("list_links", {}, None, "alice")
    links = result["structuredContent"]["links"]
    assert [l["title"] for l in links] == ["Portfolio", "Blog"]
    assert set(links[0]) == {"title", "url", "icon", "click_count"}
    assert _text(result).index("Portfolio") < _text(result).index("Blog")
    assert "Hidden" not in _text(result)


def test_list_services_projection(seeded_store, reader):
    result = _engine(seeded_store, reader).execute("list_services", {}, None, "alice")
    services = result["structuredContent"]["services"]
    assert [s["id"] for s in services] == ["svc-design", "svc-call"]
    assert services[0]["price"] == "$450"
    assert services[1]["price"] == "$150/hr"


def test_unknown_profile_is_tool_error(seeded_store, reader):
    result = _engine(seeded_store, reader).execute("get_profile", {}, None, "nobody")
    assert result["isError"] is True
    assert _text(result) == 'Profile "nobody" not found.'


def test_demo_profile_read_without_store_rows(seeded_store, reader):
    result = _engine(seeded_store, reader).execute("get_profile", {}, None, "demo")
    assert "isError" not in result
    assert "Demo Creator" in _text(result)


def test_send_message_persists_inquiry(seeded_store, reader):
    args = {"service_id": "svc-design", "sender_name": "Agent Smith",
            "sender_email": "smith@example.com", "message": "Hello"}
    result = _engine(seeded_store, reader).execute("send_message", args, _inquirer("key_abc"), "alice")
    assert "isError" not in result
    assert "Inquiry ID" in _text(result)

    (inquiry,) = seeded_store.list_inquiries(ALICE_ID)
    assert inquiry.id == result["structuredContent"]["inquiry_id"]
    assert inquiry.source == "agent"
    assert inquiry.agent_identifier == "mcp-api:key_abc"
    assert inquiry.message == "Hello"


def test_send_message_validation_errors(seeded_store, reader):
    engine = _engine(seeded_store, reader)
    base = {"service_id": "svc-design", "sender_name": "A", "sender_email": "a@b.co", "message": "hi"}

    missing = engine.execute("send_message", {**base, "message": ""}, _inquirer(), "alice")
    assert missing["isError"] and "Missing required fields" in _text(missing)

    bad_email = engine.execute("send_message", {**base, "sender_email": "not-an-email"}, _inquirer(), "alice")
    assert bad_email["isError"] and _text(bad_email) == "Invalid email format."

    wrong_type = engine.execute("send_message", {**base, "service_id": 7}, _inquirer(), "alice")
    assert wrong_type["isError"] and "Invalid arguments" in _text(wrong_type)

    unknown = engine.execute("send_message", {**base, "service_id": "nope"}, _inquirer(), "alice")
    assert unknown["isError"] and "Service not found" in _text(unknown)

    inactive = engine.execute("send_message", {**base, "service_id": "svc-old"}, _inquirer(), "alice")
    assert inactive["isError"] and "not currently available" in _text(inactive)

    # Another profile's service cannot be reached through alice's endpoint.
    foreign = engine.execute("send_message", {**base, "service_id": "svc-bob"}, _inquirer(), "alice")
    assert foreign["isError"]

    assert seeded_store.list_inquiries(ALICE_ID) == []
    assert seeded_store.list_inquiries(BOB_ID) == []


def test_request_quote_builds_message(seeded_store, reader):
    args = {"service_id": "svc-design", "sender_name": "A", "sender_email": "a@b.co",
            "project_description": "New logo", "budget_range": "$1k-5k"}
    result = _engine(seeded_store, reader).execute("request_quote", args, _inquirer(), "alice")
    assert "Quote request submitted" in _text(result)

    (inquiry,) = seeded_store.list_inquiries(ALICE_ID)
    assert inquiry.message == build_quote_message("New logo", "$1k-5k")
    assert "**Timeline:**" not in inquiry.message


def test_demo_transactions_do_not_write(seeded_store, reader):
    args = {"service_id": "demo-service-1", "sender_name": "A", "sender_email": "a@b.co", "message": "hi"}
    result = _engine(seeded_store, reader).execute("send_message", args, _inquirer(), "demo")
    assert "demo mode" in _text(result)
    assert seeded_store.list_inquiries("demo-profile-001") == []
