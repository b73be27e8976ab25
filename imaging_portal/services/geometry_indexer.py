"""
Geometry Indexer
Computes each instance's image plane in patient space and stores it as IndexedSlice rows.
"""
import logging
from typing import List, Optional

import numpy as np
from pydicom import Dataset

from imaging_portal.extensions import db
from imaging_portal.models import ImagingStudy, IndexedSlice
from imaging_portal.utils.dicom_utils import (
    first_string_value, parse_dicom_float_list, parse_instance_number
)

logger = logging.getLogger(__name__)


def plane_from_orientation(ipp, row_dir, col_dir):
    """
    normal = row_dir x col_dir (left unnormalized) and d = normal . ipp

    Returns (normal ndarray, d float)
    """
    normal = np.cross(np.asarray(row_dir, dtype=float), np.asarray(col_dir, dtype=float))
    return normal, float(np.dot(normal, np.asarray(ipp, dtype=float)))


def build_indexed_slice(study: ImagingStudy, ds: Dataset) -> Optional[IndexedSlice]:
    """
    Slice geometry for one instance, or None when the instance lacks a series
    or SOP instance UID, or a well-formed IPP (3), IOP (6) or PixelSpacing (2).
    """
    series_uid = first_string_value(ds, 'SeriesInstanceUID')
    sop_uid = first_string_value(ds, 'SOPInstanceUID')
    if not series_uid or not sop_uid:
        return None

    ipp = parse_dicom_float_list(ds, 'ImagePositionPatient', 3)
    iop = parse_dicom_float_list(ds, 'ImageOrientationPatient', 6)
    spacing = parse_dicom_float_list(ds, 'PixelSpacing', 2)
    if ipp is None or iop is None or spacing is None:
        return None

    row_dir, col_dir = iop[:3], iop[3:]
    normal, plane_d = plane_from_orientation(ipp, row_dir, col_dir)

    return IndexedSlice(
        study_id=study.study_id,
        patient_user_id=study.user_id,
        study_instance_uid=study.study_instance_uid,
        series_instance_uid=series_uid,
        sop_instance_uid=sop_uid,
        instance_number=parse_instance_number(ds),
        frame_of_reference_uid=first_string_value(ds, 'FrameOfReferenceUID'),
        ipp_x=ipp[0], ipp_y=ipp[1], ipp_z=ipp[2],
        row_dir_x=row_dir[0], row_dir_y=row_dir[1], row_dir_z=row_dir[2],
        col_dir_x=col_dir[0], col_dir_y=col_dir[1], col_dir_z=col_dir[2],
        row_spacing=spacing[0],
        col_spacing=spacing[1],
        normal_x=float(normal[0]), normal_y=float(normal[1]), normal_z=float(normal[2]),
        plane_d=plane_d,
        study_date=study.study_date,
    )


def build_indexed_slices(study: ImagingStudy, datasets: List[Dataset]) -> List[IndexedSlice]:
    """Index every usable instance; unusable ones are logged and skipped"""
    slices = []
    skipped = 0
    for ds in datasets:
        try:
            indexed = build_indexed_slice(study, ds)
        except Exception as e:
            logger.warning(f"Skipping instance in study {study.study_id}: {e}")
            indexed = None
        if indexed is None:
            skipped += 1
            continue
        slices.append(indexed)

    logger.info(f"Study {study.study_id}: {len(slices)} slices indexed, {skipped} instances skipped")
    return slices


def save_indexed_slices_for_study(study_id: str, slices: List[IndexedSlice], batch_size: int = 400) -> int:
    """
    Replace the study's slice index with `slices`.

    Two phases: delete the old rows (committed), then insert the new ones in
    commits of at most batch_size. A reader between the phases, or between
    batches, sees an empty or partial index.

    Returns:
        int: number of slices written
    """
    if batch_size < 1:
        batch_size = 1

    deleted = IndexedSlice.query.filter_by(study_id=study_id).delete(synchronize_session=False)
    db.session.commit()
    logger.debug(f"Study {study_id}: removed {deleted} previous slices")

    for start in range(0, len(slices), batch_size):
        batch = slices[start:start + batch_size]
        for indexed in batch:
            indexed.study_id = study_id
        db.session.add_all(batch)
        db.session.commit()

    return len(slices)
