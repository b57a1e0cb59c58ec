def test_package_imports() -> None:
    import brief_coverage  # noqa: F401

    from brief_coverage import cli  # noqa: F401
    from brief_coverage.core import agents, config  # noqa: F401
    from brief_coverage.coverage import audit, fallback, fill_missing, report  # noqa: F401
    from brief_coverage.export.validators import citations  # noqa: F401
    from brief_coverage.processing import collector, runner  # noqa: F401
    from brief_coverage.scrapers import feed_fetcher, redirects  # noqa: F401


def test_default_data_paths() -> None:
    from brief_coverage.core.config import BRIEF_STORE_PATH

    assert BRIEF_STORE_PATH.endswith("/data/brief_store.json") or BRIEF_STORE_PATH.endswith(
        "\\data\\brief_store.json"
    )
