import pytest

from errors import FormAlreadyExistsError, IncompleteReason, IncompleteSubmissionError
from xform_parser import parse_xform


class FakeSession:
    def __init__(self, existing=()):
        self.existing = set(existing)
        self.checked = []

    def exists(self, form_id):
        self.checked.append(form_id)
        return form_id in self.existing


def test_parse_builds_definition(sample_xml):
    form = parse_xform(None, "alice", sample_xml, "sample.xml", FakeSession())
    assert form.form_id == "household_survey"
    assert form.title == "Household survey"
    assert form.created_by == "alice"
    assert form.filename == "sample.xml"
    assert form.xml == sample_xml

    root = form.root
    assert root.name == "data"
    assert root.path == "/data"
    assert root.data_type == "group"
    by_name = {child.name: child for child in root.children}
    assert list(by_name) == ["name", "age", "address"]
    assert by_name["name"].required is True
    assert by_name["age"].data_type == "int"
    address = by_name["address"]
    assert address.data_type == "group"
    city = address.children[1]
    assert city.path == "/data/address/city"
    assert city.data_type == "string"
    assert city.readonly is True


def test_form_name_overrides_document_title(sample_xml):
    form = parse_xform("  MyForm ", "alice", sample_xml, "sample.xml", FakeSession())
    assert form.title == "MyForm"


def test_missing_title(no_title_xml):
    with pytest.raises(IncompleteSubmissionError) as info:
        parse_xform(None, "alice", no_title_xml, "notitle.xml", FakeSession())
    assert info.value.reason is IncompleteReason.TITLE_MISSING


def test_missing_id(no_id_xml):
    with pytest.raises(IncompleteSubmissionError) as info:
        parse_xform("Named", "alice", no_id_xml, "noid.xml", FakeSession())
    assert info.value.reason is IncompleteReason.ID_MISSING


def test_id_checked_before_title():
    xml = (
        '<h:html xmlns="http://www.w3.org/2002/xforms" xmlns:h="http://www.w3.org/1999/xhtml">'
        "<h:head><model><instance><data/></instance></model></h:head></h:html>"
    )
    with pytest.raises(IncompleteSubmissionError) as info:
        parse_xform(None, "alice", xml, "x.xml", FakeSession())
    assert info.value.reason is IncompleteReason.ID_MISSING


def test_existing_id_raises_before_title_check(no_title_xml):
    session = FakeSession(existing={"untitled_form"})
    with pytest.raises(FormAlreadyExistsError) as info:
        parse_xform(None, "alice", no_title_xml, "notitle.xml", session)
    assert info.value.form_id == "untitled_form"
    assert session.checked == ["untitled_form"]


@pytest.mark.parametrize(
    "xml, fragment",
    [
        ("<h:html", "line 1"),
        ("<form/>", "unexpected root element <form>"),
        ('<h:html xmlns:h="http://www.w3.org/1999/xhtml"/>', "missing <h:head>"),
        ('<h:html xmlns:h="http://www.w3.org/1999/xhtml"><h:head/></h:html>', "missing <model>"),
        (
            '<h:html xmlns="http://www.w3.org/2002/xforms" xmlns:h="http://www.w3.org/1999/xhtml">'
            "<h:head><model><instance/></model></h:head></h:html>",
            "main <instance> is empty",
        ),
        (
            '<h:html xmlns="http://www.w3.org/2002/xforms" xmlns:h="http://www.w3.org/1999/xhtml">'
            '<h:head><model><instance id="choices"><c/></instance></model></h:head></h:html>',
            "missing main <instance>",
        ),
    ],
)
def test_bad_documents(xml, fragment):
    with pytest.raises(IncompleteSubmissionError) as info:
        parse_xform("T", "alice", xml, "bad.xml", FakeSession())
    assert info.value.reason is IncompleteReason.BAD_PARSE
    assert fragment in info.value.message


def test_secondary_instance_is_skipped():
    xml = (
        '<h:html xmlns="http://www.w3.org/2002/xforms" xmlns:h="http://www.w3.org/1999/xhtml">'
        "<h:head><h:title>T</h:title><model>"
        '<instance id="lookup"><items/></instance>'
        '<instance><main id="main_form"><q/></main></instance>'
        "</model></h:head></h:html>"
    )
    form = parse_xform(None, "alice", xml, "x.xml", FakeSession())
    assert form.form_id == "main_form"
    assert [c.name for c in form.root.children] == ["q"]


def test_dump_tree_lists_every_element(sample_xml):
    form = parse_xform(None, "alice", sample_xml, "sample.xml", FakeSession())
    lines = form.dump_tree()
    assert lines[0] == "Form 'household_survey' (Household survey)"
    assert "  data: group" in lines
    assert "    name: string [required]" in lines
    assert "      street: string" in lines
