"""
Point Resolver
Finds, for each requested study, the indexed slice whose plane is nearest to a
patient-space point, and the point's (row, col) on that slice.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from imaging_portal.errors import ValidationError
from imaging_portal.models import ImagingStudy, IndexedSlice
from imaging_portal.utils.decorators import owns_study

logger = logging.getLogger(__name__)


@dataclass
class PointMatch:
    study_id: str
    study_instance_uid: str
    series_instance_uid: str
    sop_instance_uid: str
    instance_number: int
    row: float
    col: float
    distance: float

    def to_dict(self):
        """camelCase form used by the API"""
        return {
            'studyId': self.study_id,
            'studyInstanceUid': self.study_instance_uid,
            'seriesInstanceUid': self.series_instance_uid,
            'sopInstanceUid': self.sop_instance_uid,
            'instanceNumber': self.instance_number,
            'row': self.row,
            'col': self.col,
            'distance': self.distance,
        }


def slices_for_study_and_frame(study_id: str, frame_of_reference_uid: str) -> List[IndexedSlice]:
    """Indexed slices of a study in one frame, in deterministic tie-break order"""
    if not study_id or not frame_of_reference_uid:
        raise ValidationError("study_id and frame_of_reference_uid are required")
    return (
        IndexedSlice.query
        .filter_by(study_id=study_id, frame_of_reference_uid=frame_of_reference_uid)
        .order_by(IndexedSlice.instance_number, IndexedSlice.sop_instance_uid, IndexedSlice.id)
        .all()
    )


def nearest_slice(slices: Sequence[IndexedSlice], point) -> Optional[tuple]:
    """
    (slice, distance) minimizing |normal . p - d|. The first minimum wins.
    Slices whose distance is not finite are never matched.
    """
    if not slices:
        return None
    p = np.asarray(point, dtype=float)
    normals = np.array([s.normal for s in slices], dtype=float)
    d = np.array([s.plane_d for s in slices], dtype=float)
    distances = np.abs(normals @ p - d)
    finite = np.isfinite(distances)
    if not finite.any():
        return None
    best = int(np.argmin(np.where(finite, distances, np.inf)))
    return slices[best], float(distances[best])


def project_point(indexed: IndexedSlice, point):
    """(row, col) of the point on the slice in pixel units; 0 on zero spacing, no clamping"""
    v = np.asarray(point, dtype=float) - np.asarray(indexed.ipp, dtype=float)
    row = float(np.dot(v, indexed.row_dir)) / indexed.row_spacing if indexed.row_spacing else 0.0
    col = float(np.dot(v, indexed.col_dir)) / indexed.col_spacing if indexed.col_spacing else 0.0
    return row, col


def resolve_point(frame_of_reference_uid: str, x: float, y: float, z: float,
                  study_ids: List[str], caller_id: str) -> List[PointMatch]:
    """
    Nearest slice per study for the point (x, y, z) in the given frame.

    Studies the caller does not own, and studies with no slices in the frame,
    are left out of the result.
    """
    frame_of_reference_uid = (frame_of_reference_uid or '').strip()
    if not frame_of_reference_uid:
        raise ValidationError("frameOfReferenceUid is required")
    if not study_ids:
        raise ValidationError("studyIds is required")

    point = (float(x), float(y), float(z))
    if not np.all(np.isfinite(point)):
        raise ValidationError("x, y and z must be finite")
    matches = []
    for study_id in study_ids:
        study = ImagingStudy.query.get(study_id) if study_id else None
        if not owns_study(study, caller_id):
            logger.debug(f"resolve_point: skipping study {study_id!r} (missing or not owned)")
            continue

        found = nearest_slice(slices_for_study_and_frame(study_id, frame_of_reference_uid), point)
        if found is None:
            continue
        indexed, distance = found
        row, col = project_point(indexed, point)
        matches.append(PointMatch(
            study_id=study.study_id,
            study_instance_uid=indexed.study_instance_uid,
            series_instance_uid=indexed.series_instance_uid,
            sop_instance_uid=indexed.sop_instance_uid,
            instance_number=indexed.instance_number,
            row=row,
            col=col,
            distance=distance,
        ))
    return matches
