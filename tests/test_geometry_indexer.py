"""
Tests for per-instance plane geometry and the batched index replacement.
"""
import pytest

from imaging_portal.models import ImagingStudy, IndexedSlice
from imaging_portal.services.geometry_indexer import (
    build_indexed_slice,
    build_indexed_slices,
    plane_from_orientation,
    save_indexed_slices_for_study,
)
from conftest import make_slice


@pytest.fixture
def study():
    return ImagingStudy(
        study_id='STUDY-AAAAAAAA',
        user_id='user-1',
        study_instance_uid='1.2.3.STUDY',
        study_date='20240105',
    )


def test_axial_plane_normal_and_offset(study):
    indexed = build_indexed_slice(study, make_slice('S1', '1.1', z=12.5))
    assert indexed.normal == (0.0, 0.0, 1.0)
    assert indexed.plane_d == pytest.approx(12.5)
    assert indexed.row_spacing == 0.5
    assert indexed.col_spacing == 0.5


def test_normal_is_cross_product_left_unnormalized():
    normal, d = plane_from_orientation([1, 1, 1], [2, 0, 0], [0, 3, 0])
    assert list(normal) == [0.0, 0.0, 6.0]
    assert d == pytest.approx(6.0)


def test_slice_fields_copied_from_study_and_header(study):
    indexed = build_indexed_slice(study, make_slice('S1', '1.1', z=3.0, instance_number=9))
    assert indexed.study_id == study.study_id
    assert indexed.patient_user_id == 'user-1'
    assert indexed.study_instance_uid == '1.2.3.STUDY'
    assert indexed.series_instance_uid == 'S1'
    assert indexed.sop_instance_uid == '1.1'
    assert indexed.instance_number == 9
    assert indexed.frame_of_reference_uid == '1.2.3.F1'
    assert indexed.ipp == (0.0, 0.0, 3.0)
    assert indexed.study_date == '20240105'


def test_missing_instance_number_defaults_to_zero(study):
    ds = make_slice('S1', '1.1')
    del ds.InstanceNumber
    assert build_indexed_slice(study, ds).instance_number == 0


def test_missing_frame_of_reference_is_indexed_with_empty_frame(study):
    indexed = build_indexed_slice(study, make_slice('S1', '1.1', include_frame=False))
    assert indexed is not None
    assert indexed.frame_of_reference_uid == ''


def test_incomplete_instances_are_skipped(study):
    no_spacing = make_slice('S1', 'no-spacing', include_spacing=False)
    no_series = make_slice('', 'no-series')
    bad_ipp = make_slice('S1', 'bad-ipp')
    bad_ipp.ImagePositionPatient = [0, 0]
    good = make_slice('S1', 'good')

    slices = build_indexed_slices(study, [no_spacing, no_series, bad_ipp, good])
    assert [s.sop_instance_uid for s in slices] == ['good']


def test_save_replaces_previous_index_in_batches(app, study):
    first = build_indexed_slices(study, [make_slice('S1', f'a{i}', z=float(i)) for i in range(7)])
    assert save_indexed_slices_for_study(study.study_id, first, batch_size=3) == 7
    assert IndexedSlice.query.filter_by(study_id=study.study_id).count() == 7

    second = build_indexed_slices(study, [make_slice('S1', f'b{i}', z=float(i)) for i in range(2)])
    save_indexed_slices_for_study(study.study_id, second, batch_size=3)
    rows = IndexedSlice.query.filter_by(study_id=study.study_id).all()
    assert sorted(r.sop_instance_uid for r in rows) == ['b0', 'b1']


def test_save_leaves_other_studies_alone(app, study):
    other = ImagingStudy(study_id='STUDY-BBBBBBBB', user_id='user-1', study_instance_uid='1.2.3.OTHER')
    save_indexed_slices_for_study(other.study_id, build_indexed_slices(other, [make_slice('S9', 'o1')]))
    save_indexed_slices_for_study(study.study_id, build_indexed_slices(study, [make_slice('S1', 's1')]))
    assert IndexedSlice.query.filter_by(study_id=other.study_id).count() == 1


def test_non_finite_geometry_is_skipped_and_indexing_completes(app, study):
    previous = build_indexed_slices(study, [make_slice('S1', f'old{i}', z=float(i)) for i in range(2)])
    save_indexed_slices_for_study(study.study_id, previous)

    nan_ipp = make_slice('S1', 'nan-ipp')
    nan_ipp.add_new(0x00200032, 'LO', ['0', '0', 'NaN'])
    inf_spacing = make_slice('S1', 'inf-spacing')
    inf_spacing.add_new(0x00280030, 'LO', ['Inf', '0.5'])
    good = [make_slice('S1', f'new{i}', z=float(i)) for i in range(3)]

    slices = build_indexed_slices(study, good + [nan_ipp, inf_spacing])
    assert save_indexed_slices_for_study(study.study_id, slices) == 3
    rows = IndexedSlice.query.filter_by(study_id=study.study_id).all()
    assert sorted(r.sop_instance_uid for r in rows) == ['new0', 'new1', 'new2']
