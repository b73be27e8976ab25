"""
Header Scanner
Reads DICOM headers of the objects under a storage prefix and groups them by study
"""
import logging
from dataclasses import dataclass
from typing import Dict, List

from pydicom import dcmread

from imaging_portal.clients.object_storage import parse_gcs_prefix
from imaging_portal.errors import UpstreamError
from imaging_portal.utils.dicom_utils import first_string_value, looks_like_dicom_object_name

logger = logging.getLogger("dicom")


@dataclass
class InstanceHeader:
    """Identifying header fields of one DICOM instance"""
    study_instance_uid: str
    series_instance_uid: str
    sop_instance_uid: str
    modality: str = ''
    study_date: str = ''
    study_description: str = ''


def read_instance_header(fp) -> InstanceHeader:
    """Parse a DICOM stream up to (not including) pixel data"""
    ds = dcmread(fp, stop_before_pixels=True, force=True)
    return InstanceHeader(
        study_instance_uid=first_string_value(ds, 'StudyInstanceUID'),
        series_instance_uid=first_string_value(ds, 'SeriesInstanceUID'),
        sop_instance_uid=first_string_value(ds, 'SOPInstanceUID'),
        modality=first_string_value(ds, 'Modality'),
        study_date=first_string_value(ds, 'StudyDate'),
        study_description=first_string_value(ds, 'StudyDescription'),
    )


def scan_prefix(enumerator, gcs_prefix: str) -> Dict[str, List[InstanceHeader]]:
    """
    Group the DICOM instances under gcs_prefix by StudyInstanceUID.

    Objects that fail to open or parse, and headers lacking a study or SOP
    instance UID, are skipped. Groups are returned in first-seen order.

    Raises:
        ValidationError: gcs_prefix is not a gs:// location
        UpstreamError: the listing itself failed
    """
    bucket, prefix = parse_gcs_prefix(gcs_prefix)
    studies: Dict[str, List[InstanceHeader]] = {}
    scanned = 0
    skipped = 0

    try:
        for obj in enumerator.list_objects(bucket, prefix):
            if not looks_like_dicom_object_name(obj.name):
                continue
            scanned += 1
            try:
                with obj.open() as fp:
                    header = read_instance_header(fp)
            except Exception as e:
                skipped += 1
                logger.warning(f"Skipping unreadable object gs://{bucket}/{obj.name}: {e}")
                continue

            if not header.study_instance_uid or not header.sop_instance_uid:
                skipped += 1
                logger.debug(f"Skipping gs://{bucket}/{obj.name}: missing study or SOP instance UID")
                continue

            studies.setdefault(header.study_instance_uid, []).append(header)
    except UpstreamError:
        raise
    except Exception as e:
        raise UpstreamError(f"listing {gcs_prefix} failed: {e}") from e

    logger.info(
        f"Scanned {scanned} candidate objects under {gcs_prefix}: "
        f"{len(studies)} studies, {skipped} skipped"
    )
    return studies
