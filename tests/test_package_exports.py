import importlib


def _read_pyproject_version() -> str:
    import re
    from pathlib import Path

    txt = (Path(__file__).resolve().parents[1] / "pyproject.toml").read_text(encoding="utf-8")
    m = re.search(r"^version\s*=\s*\"([^\"]+)\"\s*$", txt, flags=re.MULTILINE)
    assert m, "Could not locate [project].version in pyproject.toml"
    return m.group(1)


def test_convenience_imports_work():
    import linkhub_gateway

    assert hasattr(linkhub_gateway, "AgentGateway")
    assert hasattr(linkhub_gateway, "create_app")

    from linkhub_gateway import ApiKeyManager, GatewayConfig, GatewayStore, RequestDispatcher  # noqa: F401

    importlib.reload(linkhub_gateway)


def test_version_export_matches_pyproject():
    import linkhub_gateway
    from linkhub_gateway.dispatcher import SERVER_VERSION

    assert linkhub_gateway.__version__ == _read_pyproject_version()
    assert SERVER_VERSION == linkhub_gateway.__version__
