"""Shared fixtures: upstream payloads, a scriptable parser and DICOM files."""

import copy
import json
from typing import Optional

import numpy as np
import pydicom
import pytest
from pydicom.dataset import Dataset, FileDataset
from pydicom.sequence import Sequence
from pydicom.uid import ExplicitVRLittleEndian

from dicom_preview.config import CONFIG
from dicom_preview.upstream import UpstreamResult

PATIENT_NAME = {
    "depth": 0,
    "tag": "(0010,0010)",
    "name": "PatientName",
    "vr": "PN",
    "value": {"type": "String", "content": "Doe^John"},
}


def _debug_info(**overrides) -> dict:
    info = {
        "file_size": 1024,
        "file_preamble": "[00, 00]",
        "dicom_magic": "DICM",
        "transfer_syntax": None,
        "attribute_count": 1,
        "sequence_count": 0,
        "meta_info_present": True,
        "has_pixel_data": False,
        "pixel_data_vr": None,
        "image_dimensions": None,
        "number_of_frames": None,
        "bits_allocated": None,
        "samples_per_pixel": None,
        "photometric_interpretation": None,
        "pixel_representation": None,
        "parse_error": None,
        "pixel_decode_error": None,
        "pixel_convert_error": None,
        "pixel_encode_error": None,
    }
    info.update(overrides)
    return info


@pytest.fixture
def make_payload():
    """Factory for upstream payload dicts; attributes default to one PatientName leaf."""
    def _make(attributes: Optional[list] = None, preview_images: Optional[list] = None, **debug) -> dict:
        return {
            "attributes": [dict(PATIENT_NAME)] if attributes is None else attributes,
            "preview_images": preview_images,
            "debug_info": _debug_info(**debug),
        }
    return _make


class FakeParser:
    """Upstream parser double that records every call and release."""

    def __init__(
        self,
        json_data: Optional[str] = None,
        error_message: Optional[str] = None,
        reentrant: bool = True,
        raises: Optional[Exception] = None,
    ):
        self.json_data = json_data
        self.error_message = error_message
        self.reentrant = reentrant
        self.raises = raises
        self.calls: list[str] = []
        self.released: list[UpstreamResult] = []

    @classmethod
    def returning(cls, payload: dict, **kwargs) -> "FakeParser":
        return cls(json_data=json.dumps(payload), **kwargs)

    def parse_file(self, path: str) -> UpstreamResult:
        self.calls.append(path)
        if self.raises is not None:
            raise self.raises
        return UpstreamResult(json_data=self.json_data, error_message=self.error_message)

    def release(self, result: UpstreamResult) -> None:
        self.released.append(result)


@pytest.fixture
def fake_parser():
    return FakeParser


@pytest.fixture
def source_file(tmp_path):
    """An existing, readable file; its content is never read by a fake parser."""
    path = tmp_path / "scan.dcm"
    path.write_bytes(b"\0" * 132)
    return path


def write_dicom(
    path: str,
    patient_name: str = "Doe^John",
    frames: int = 1,
    pixel_bytes: Optional[bytes] = None,
    with_pixels: bool = True,
) -> None:
    """Write a small DICOM file with a nested sequence and optional pixel data."""
    file_meta = pydicom.Dataset()
    file_meta.MediaStorageSOPClassUID = pydicom.uid.UID("1.2.840.10008.5.1.4.1.1.2")
    file_meta.MediaStorageSOPInstanceUID = pydicom.uid.generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(path, {}, file_meta=file_meta, preamble=b"\0" * 128)
    ds.PatientName = patient_name
    ds.PatientID = "12345"
    ds.Modality = "CT"
    ds.ImageType = ["ORIGINAL", "PRIMARY"]

    code = Dataset()
    code.CodeValue = "113076"
    code.CodeMeaning = "Segmentation <mask>"
    reference = Dataset()
    reference.ReferencedSOPInstanceUID = "1.2.3.4"
    reference.ConceptNameCodeSequence = Sequence([code])
    ds.ReferencedImageSequence = Sequence([reference])

    if with_pixels:
        ds.Rows = 4
        ds.Columns = 4
        ds.SamplesPerPixel = 1
        ds.PhotometricInterpretation = "MONOCHROME2"
        ds.PixelRepresentation = 0
        ds.BitsAllocated = 16
        ds.BitsStored = 16
        ds.HighBit = 15
        if frames > 1:
            ds.NumberOfFrames = frames
        if pixel_bytes is None:
            pixels = np.arange(frames * 16, dtype=np.uint16).reshape(frames, 4, 4) * 100
            pixel_bytes = pixels.tobytes()
        ds.PixelData = pixel_bytes

    ds.save_as(path)


@pytest.fixture
def write_dicom_file(tmp_path):
    """Factory writing a DICOM file under tmp_path; keyword arguments go to write_dicom."""
    def _write(name: str = "image.dcm", **kwargs):
        path = tmp_path / name
        write_dicom(str(path), **kwargs)
        return path
    return _write


@pytest.fixture
def dicom_file(write_dicom_file):
    return write_dicom_file()


@pytest.fixture
def restore_config():
    """Undo any apply_config() made by the test."""
    saved = copy.deepcopy(CONFIG)
    yield
    CONFIG.clear()
    CONFIG.update(saved)
