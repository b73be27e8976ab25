"""
Orientation Filter
Drops localizer/scout images whose ImageOrientationPatient differs from the
dominant orientation of their series.
"""
import logging
from collections import Counter, OrderedDict
from typing import Iterable, List, Optional

from pydicom import Dataset

from imaging_portal.utils.dicom_utils import first_string_value, parse_dicom_float_list

logger = logging.getLogger(__name__)


def _format_component(value: float) -> str:
    text = f"{value:.4f}"
    if text == '-0.0000':
        text = '0.0000'
    return text


def orientation_fingerprint(ds: Dataset) -> Optional[str]:
    """
    Canonical text form of ImageOrientationPatient, 4 decimals per component.

    None when the element is missing or not six numbers.
    """
    iop = parse_dicom_float_list(ds, 'ImageOrientationPatient', 6)
    if iop is None:
        return None
    return ','.join(_format_component(v) for v in iop)


def dominant_orientation(datasets: Iterable[Dataset]) -> Optional[str]:
    """Most frequent fingerprint; ties go to the lexicographically smallest"""
    counts = Counter(fp for fp in (orientation_fingerprint(ds) for ds in datasets) if fp)
    if not counts:
        return None
    return min(counts.items(), key=lambda item: (-item[1], item[0]))[0]


def filter_series(datasets: List[Dataset]) -> List[Dataset]:
    """
    Keep the instances of one series that match its dominant orientation.

    Instances without a readable orientation are kept. Order is preserved.
    """
    dominant = dominant_orientation(datasets)
    if dominant is None:
        return list(datasets)

    kept = []
    for ds in datasets:
        fp = orientation_fingerprint(ds)
        if fp is None or fp == dominant:
            kept.append(ds)

    dropped = len(datasets) - len(kept)
    if dropped:
        logger.info(
            f"Dropped {dropped} off-orientation instance(s) from series "
            f"{first_string_value(datasets[0], 'SeriesInstanceUID') or '?'}"
        )
    return kept


def filter_study_datasets(datasets: List[Dataset]) -> List[Dataset]:
    """Apply filter_series to each SeriesInstanceUID group, preserving input order"""
    groups = OrderedDict()
    for ds in datasets:
        groups.setdefault(first_string_value(ds, 'SeriesInstanceUID'), []).append(ds)

    kept_ids = set()
    for series in groups.values():
        kept_ids.update(id(ds) for ds in filter_series(series))

    return [ds for ds in datasets if id(ds) in kept_ids]
