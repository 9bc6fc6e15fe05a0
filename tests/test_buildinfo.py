from dcontroller.buildinfo import BuildInfo


def test_str_format():
    info = BuildInfo(version="1.2.3", commit_hash="abcdef12", build_date="2024-05-01")
    assert str(info) == "version 1.2.3 (abcdef12) built on 2024-05-01"


def test_defaults():
    info = BuildInfo()
    assert info.version == "dev"
    assert info.commit_hash == "n/a"
    assert info.build_date == "<unknown>"
    assert str(info) == "version dev (n/a) built on <unknown>"


def test_contains_fields():
    info = BuildInfo("v0", "c0", "d0")
    text = str(info)
    assert info.version in text and info.commit_hash in text and info.build_date in text