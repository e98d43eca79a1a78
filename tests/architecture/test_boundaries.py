from pytest_archon import archrule

PKG = "smile_dremio_gateway"


def test_models_independence() -> None:
    """
    Models and exceptions are the foundation.
    They must not import any layer above them.
    """
    (
        archrule("models_are_independent")
        .match(f"{PKG}.models")
        .match(f"{PKG}.exceptions")
        .should_not_import(f"{PKG}.ports*")
        .should_not_import(f"{PKG}.store*")
        .should_not_import(f"{PKG}.feed*")
        .should_not_import(f"{PKG}.sync*")
        .should_not_import(f"{PKG}.dispatcher")
        .check(PKG)
    )


def test_ports_layering() -> None:
    """
    Ports (interfaces) should not depend on adapters (implementations).
    """
    (
        archrule("ports_layering")
        .match(f"{PKG}.ports*")
        .should_not_import(f"{PKG}.store*")
        .should_not_import(f"{PKG}.feed*")
        .should_not_import(f"{PKG}.sync*")
        .check(PKG)
    )


def test_sync_engine_isolation() -> None:
    """
    The sync engine writes through the store port only.
    It knows nothing of the feed, the dispatcher or concrete store clients.
    """
    (
        archrule("sync_isolation")
        .match(f"{PKG}.sync*")
        .should_not_import(f"{PKG}.feed*")
        .should_not_import(f"{PKG}.dispatcher")
        .should_not_import(f"{PKG}.store.sql")
        .should_not_import(f"{PKG}.store.flight")
        .check(PKG, only_direct_imports=True)
    )


def test_feed_and_store_are_independent() -> None:
    """
    Feed and store adapters never import each other or the layers above.
    """
    (
        archrule("feed_independence")
        .match(f"{PKG}.feed*")
        .should_not_import(f"{PKG}.store*")
        .should_not_import(f"{PKG}.sync*")
        .should_not_import(f"{PKG}.dispatcher")
        .check(PKG)
    )
    (
        archrule("store_independence")
        .match(f"{PKG}.store*")
        .should_not_import(f"{PKG}.feed*")
        .should_not_import(f"{PKG}.sync*")
        .should_not_import(f"{PKG}.dispatcher")
        .check(PKG)
    )


def test_optional_clients_only_wired_by_cli() -> None:
    """
    The NATS and Arrow Flight clients need optional extras.
    Only the CLI bootstrap may import them.
    """
    (
        archrule("optional_clients")
        .match(f"{PKG}*")
        .exclude(f"{PKG}.cli")
        .exclude(f"{PKG}.__main__")
        .exclude(f"{PKG}.feed.jetstream")
        .exclude(f"{PKG}.store.flight")
        .should_not_import(f"{PKG}.feed.jetstream")
        .should_not_import(f"{PKG}.store.flight")
        .should_not_import("nats*")
        .should_not_import("pyarrow*")
        .check(PKG)
    )
