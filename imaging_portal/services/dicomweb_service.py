"""
DICOMweb listing built from study metadata held in the DICOM store
"""
import logging
from collections import OrderedDict
from typing import Any, Dict, List

from pydicom import Dataset

from imaging_portal.utils.dicom_utils import first_string_value, parse_instance_number
from .orientation_filter import filter_study_datasets

logger = logging.getLogger(__name__)


def _tag(vr: str, value) -> Dict[str, Any]:
    if value in (None, ''):
        return {'vr': vr}
    return {'vr': vr, 'Value': [value]}


def list_series(datasets: List[Dataset], study_instance_uid: str) -> List[Dict[str, Any]]:
    """One DICOM JSON object per series, in first-seen order"""
    series = OrderedDict()
    for ds in datasets:
        series_uid = first_string_value(ds, 'SeriesInstanceUID')
        if not series_uid:
            continue
        entry = series.get(series_uid)
        if entry is None:
            series[series_uid] = entry = {
                '0020000D': _tag('UI', study_instance_uid),
                '0020000E': _tag('UI', series_uid),
                '00080060': _tag('CS', first_string_value(ds, 'Modality')),
                '0008103E': _tag('LO', first_string_value(ds, 'SeriesDescription')),
                '00201209': {'vr': 'IS', 'Value': [0]},
            }
        entry['00201209']['Value'][0] += 1
    return list(series.values())


def list_instances(datasets: List[Dataset], study_instance_uid: str,
                   series_instance_uid: str) -> List[Dict[str, Any]]:
    """Instances of one series after the orientation filter, ordered by InstanceNumber"""
    in_series = [ds for ds in datasets
                 if first_string_value(ds, 'SeriesInstanceUID') == series_instance_uid]
    kept = filter_study_datasets(in_series)
    kept.sort(key=parse_instance_number)

    instances = []
    for ds in kept:
        sop_uid = first_string_value(ds, 'SOPInstanceUID')
        if not sop_uid:
            continue
        instances.append({
            '0020000D': _tag('UI', study_instance_uid),
            '0020000E': _tag('UI', series_instance_uid),
            '00080018': _tag('UI', sop_uid),
            '00080016': _tag('UI', first_string_value(ds, 'SOPClassUID')),
            '00200013': _tag('IS', parse_instance_number(ds)),
            '00080060': _tag('CS', first_string_value(ds, 'Modality')),
        })
    return instances
