"""
DICOM Utilities for header value extraction, object-name filtering and
DICOM JSON (DICOMweb metadata) handling
"""
import math
import posixpath
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydicom import Dataset
from pydicom.multival import MultiValue

# Use dedicated DICOM logger for all DICOM-related operations
logger = logging.getLogger("dicom")

DICOM_EXTENSIONS = ('.dcm', '.dicom')
NON_DICOM_EXTENSIONS = ('.txt', '.pdf', '.csv', '.json', '.xml', '.zip')


def looks_like_dicom_object_name(name: str) -> bool:
    """
    Decide whether an object storage entry is worth opening as DICOM.

    Folder placeholders (trailing '/') are rejected, .dcm/.dicom accepted,
    and names without an extension accepted since many PACS exports omit one.
    Everything else, including the common document/archive types, is rejected.
    """
    if not name:
        return False
    lowered = name.lower()
    if lowered.endswith('/'):
        return False
    if lowered.endswith(DICOM_EXTENSIONS):
        return True
    _, ext = posixpath.splitext(posixpath.basename(lowered))
    if not ext:
        return True
    if ext in NON_DICOM_EXTENSIONS:
        return False
    return False


def first_string_value(ds: Dataset, keyword: str) -> str:
    """
    First value of a header element as a trimmed string.

    Returns '' when the element is missing or empty.
    """
    value = ds.get(keyword)
    if value is None:
        return ''
    if isinstance(value, (MultiValue, list, tuple)):
        if len(value) == 0:
            return ''
        value = value[0]
    if value is None:
        return ''
    return str(value).strip()


def parse_dicom_float_list(ds: Dataset, keyword: str, expected: int) -> Optional[List[float]]:
    """
    Read a multi-valued numeric element (DS/FD) as exactly `expected` floats.

    Values may be numbers or numeric strings. Returns None when the element is
    missing, has the wrong number of values, or holds something non-numeric
    or non-finite (NaN, Inf).
    """
    value = ds.get(keyword)
    if value is None or value == '':
        return None
    if not isinstance(value, (MultiValue, list, tuple)):
        value = [value]
    if len(value) != expected:
        return None
    try:
        floats = [float(v) for v in value]
    except (TypeError, ValueError):
        return None
    if not all(math.isfinite(v) for v in floats):
        return None
    return floats


def parse_instance_number(ds: Dataset) -> int:
    """InstanceNumber as int (string or numeric), 0 when missing or not a whole number"""
    raw = first_string_value(ds, 'InstanceNumber')
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        return 0


def datasets_from_dicom_json(metadata: Iterable[Dict[str, Any]]) -> List[Dataset]:
    """
    Convert DICOMweb metadata (a list of DICOM JSON objects) to pydicom Datasets.

    Instances that cannot be converted are logged and skipped.
    """
    datasets = []
    for index, obj in enumerate(metadata or []):
        try:
            datasets.append(Dataset.from_json(obj))
        except Exception as e:
            logger.warning(f"Skipping unparseable DICOM JSON instance #{index}: {e}")
    return datasets
