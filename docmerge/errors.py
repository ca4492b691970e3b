# docmerge/errors.py

"""
Exception taxonomy for the merge engine.

File-system problems (missing sources, destination conflicts) are left to the
built-in ``OSError`` family and are not wrapped here.
"""


class DocMergeError(Exception):
    """Base class for all merge engine errors."""


class ConfigurationError(DocMergeError):
    """Required inputs are missing or invalid. Raised before a run starts."""


class TemplateMissingContentError(DocMergeError):
    """The template has no body to clone. Fatal for the whole run."""


class DataIntegrityError(DocMergeError):
    """A cell's indexed string reference (or the workbook itself) cannot be resolved."""
