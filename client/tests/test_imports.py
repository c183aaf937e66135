"""Smoke tests: package and main modules import without error."""


def test_speedload_package_imports() -> None:
    """Package can be imported."""
    import speedload  # noqa: F401

    assert speedload.__file__ is not None
    assert speedload.__version__


def test_public_modules_import() -> None:
    """Store, CDN model and verifier expose expected names."""
    from speedload.cdn.client import CDNClient  # noqa: F401
    from speedload.cdn.sections import extract_range, section_file_name  # noqa: F401
    from speedload.cdn.structures import DownloadData, SectionFileRecord  # noqa: F401
    from speedload.download.hash_manager import HashManager  # noqa: F401
    from speedload.download.verifier import verify_records  # noqa: F401

    assert section_file_name(3) == "section3.dat"
