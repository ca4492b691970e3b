# docmerge/template_store.py

import copy
import logging
from pathlib import Path
from typing import Iterator, List, Sequence

import docx
from docx.opc.exceptions import PackageNotFoundError
from lxml.etree import XMLSyntaxError
from docx.oxml.ns import qn

from docmerge.errors import TemplateMissingContentError

logger = logging.getLogger(__name__)


SECTION_PROPERTIES = qn("w:sectPr")
TEXT = qn("w:t")


class TemplateBody:
    """
    Detached snapshot of a template's block-level body content.

    Holds paragraphs, tables and other body children, never the trailing
    section properties. The stored elements are never mutated; every merge
    iteration works on its own ``clone()``.
    """

    def __init__(self, elements: Sequence, source_path: str = ""):
        self._elements = tuple(elements)
        self.source_path = source_path

    @property
    def elements(self) -> tuple:
        return self._elements

    def clone(self) -> "TemplateBody":
        """Deep copy: the result shares no node with this body or earlier clones."""
        return TemplateBody(
            [copy.deepcopy(el) for el in self._elements],
            source_path=self.source_path,
        )

    def text_nodes(self) -> Iterator:
        """Every ``w:t`` element, in document order, paragraphs and tables alike."""
        for el in self._elements:
            yield from el.iter(TEXT)

    def text(self) -> str:
        return "\n".join(
            "".join(t.text or "" for t in el.iter(TEXT)) for el in self._elements
        )

    def __len__(self) -> int:
        return len(self._elements)


def open_document(path: str):
    """
    Open a .docx file with python-docx.

    Raises:
        FileNotFoundError: the file does not exist
        TemplateMissingContentError: the package has no main document part
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"The template file '{path}' does not exist.")

    try:
        return docx.Document(str(p))
    except (PackageNotFoundError, KeyError, ValueError, XMLSyntaxError) as e:
        raise TemplateMissingContentError(
            f"Template '{path}' has no readable main document content: {e}"
        ) from e


def body_element(document):
    """Return the ``w:body`` element of an opened document."""
    body = document.element.body
    if body is None:
        raise TemplateMissingContentError(
            "Document body is empty. Document generation failed."
        )
    return body


def content_elements(body) -> List:
    """Block-level children of a body, section properties excluded."""
    return [child for child in body if child.tag != SECTION_PROPERTIES]


def load_template(path: str) -> TemplateBody:
    """Read a template once and snapshot its body content."""
    document = open_document(path)
    body = body_element(document)

    elements = [copy.deepcopy(el) for el in content_elements(body)]
    logger.debug("Loaded template %s (%d body elements)", path, len(elements))

    return TemplateBody(elements, source_path=str(path))
