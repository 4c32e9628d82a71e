from pathlib import Path

import pytest

from xmlwatcher.errors import ConfigError
from xmlwatcher.watchdog.patterns import PathFilter


@pytest.mark.parametrize("path", ["a.xml", "a.XML", "a.Xml", "/tmp/w/sub/report.xml"])
def test_matches_xml_case_insensitively(path):
    assert PathFilter().matches(path)


@pytest.mark.parametrize("path", ["a.xml.txt", "a.txt", "xml", "/tmp/w/a.xmlx", "/tmp/w/.a.xml.k3j2.tmp"])
def test_rejects_other_files(path):
    assert not PathFilter().matches(path)


def test_only_final_segment_counts():
    assert not PathFilter().matches(Path("/tmp/dir.xml/notes"))
    assert PathFilter().matches(Path("/tmp/dir.txt/notes.xml"))


def test_configured_extension_list():
    path_filter = PathFilter(["XML", ".xsd"])

    assert path_filter.extensions == (".xml", ".xsd")
    assert path_filter.matches("schema.XSD")
    assert path_filter.matches("doc.xml")
    assert not path_filter.matches("doc.json")


def test_comma_separated_extensions():
    assert PathFilter("xml, rss").matches("feed.rss")


def test_empty_extension_list_is_rejected():
    with pytest.raises(ConfigError):
        PathFilter([" ", ""])


def test_filter_is_callable():
    assert PathFilter()("a.xml")
