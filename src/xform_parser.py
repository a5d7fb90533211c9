"""Minimal XForm reader.

Only the parts needed to register a form are read: the main instance (for the
form id and the element tree), the bindings (for types and flags) and the
``h:title``. Everything else in the document is kept verbatim in
``FormDefinition.xml``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol
from xml.etree import ElementTree

from errors import FormAlreadyExistsError, IncompleteReason, IncompleteSubmissionError
from models import FormDefinition, FormElement

logger = logging.getLogger(__name__)

XHTML_NS = "http://www.w3.org/1999/xhtml"
XFORMS_NS = "http://www.w3.org/2002/xforms"


class FormLookup(Protocol):
    def exists(self, form_id: str) -> bool:
        ...


def _local_name(tag: str) -> str:
    return tag.split("}", 1)[1] if tag.startswith("{") else tag


def _is_true(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"true()", "true"}


def _find(parent: ElementTree.Element, name: str, namespaces=(XFORMS_NS, XHTML_NS, "")):
    """Find a direct child by local name, tolerating missing namespaces."""
    for ns in namespaces:
        tag = f"{{{ns}}}{name}" if ns else name
        found = parent.find(tag)
        if found is not None:
            return found
    return None


def _main_instance(model: ElementTree.Element) -> Optional[ElementTree.Element]:
    for child in model:
        if _local_name(child.tag) == "instance" and child.get("id") is None:
            return child
    return None


def _collect_binds(model: ElementTree.Element) -> Dict[str, ElementTree.Element]:
    binds: Dict[str, ElementTree.Element] = {}
    for child in model:
        if _local_name(child.tag) != "bind":
            continue
        nodeset = (child.get("nodeset") or "").strip()
        if nodeset:
            binds[nodeset] = child
    return binds


def _build_element(
    node: ElementTree.Element, parent_path: str, binds: Dict[str, ElementTree.Element]
) -> FormElement:
    name = _local_name(node.tag)
    path = f"{parent_path}/{name}"
    children = [_build_element(child, path, binds) for child in node]
    bind = binds.get(path)

    data_type = "group" if children else "string"
    required = readonly = False
    if bind is not None:
        declared = bind.get("type")
        if declared and not children:
            data_type = declared.split(":", 1)[-1]
        required = _is_true(bind.get("required"))
        readonly = _is_true(bind.get("readonly"))

    return FormElement(
        name=name,
        path=path,
        data_type=data_type,
        required=required,
        readonly=readonly,
        children=children,
    )


def parse_xform(
    form_name: Optional[str],
    nickname: str,
    xml: str,
    filename: str,
    session: FormLookup,
) -> FormDefinition:
    """Parse ``xml`` into a :class:`FormDefinition`.

    ``form_name`` overrides the title declared in the document. ``session`` is
    consulted to reject ids that are already stored.

    Raises :class:`IncompleteSubmissionError` when the document cannot be read,
    has no form id or no title (checked in that order), and
    :class:`FormAlreadyExistsError` when the id is taken.
    """
    try:
        root = ElementTree.fromstring(xml)
    except ElementTree.ParseError as exc:
        raise IncompleteSubmissionError(IncompleteReason.BAD_PARSE, str(exc)) from exc

    if root.tag != f"{{{XHTML_NS}}}html":
        raise IncompleteSubmissionError(
            IncompleteReason.BAD_PARSE, f"unexpected root element <{_local_name(root.tag)}>"
        )
    head = _find(root, "head", (XHTML_NS,))
    if head is None:
        raise IncompleteSubmissionError(IncompleteReason.BAD_PARSE, "missing <h:head>")
    model = _find(head, "model")
    if model is None:
        raise IncompleteSubmissionError(IncompleteReason.BAD_PARSE, "missing <model>")
    instance = _main_instance(model)
    if instance is None:
        raise IncompleteSubmissionError(IncompleteReason.BAD_PARSE, "missing main <instance>")
    data = next(iter(instance), None)
    if data is None:
        raise IncompleteSubmissionError(IncompleteReason.BAD_PARSE, "main <instance> is empty")

    form_id = (data.get("id") or "").strip()
    if not form_id:
        raise IncompleteSubmissionError(IncompleteReason.ID_MISSING)

    if session.exists(form_id):
        raise FormAlreadyExistsError(form_id)

    title = (form_name or "").strip()
    if not title:
        title_node = _find(head, "title", (XHTML_NS,))
        title = (title_node.text or "").strip() if title_node is not None else ""
    if not title:
        raise IncompleteSubmissionError(IncompleteReason.TITLE_MISSING)

    tree = _build_element(data, "", _collect_binds(model))
    logger.debug("Parsed form %s (%s) from %s", form_id, title, filename)
    return FormDefinition(
        form_id=form_id,
        title=title,
        filename=filename,
        xml=xml,
        created_by=nickname,
        created_at=datetime.now(timezone.utc),
        root=tree,
    )
