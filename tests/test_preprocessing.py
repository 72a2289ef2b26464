import base64
import io

import numpy as np
import pytest
from PIL import Image

from agents.diagnosis.preprocessing import PreprocessingService

def encode(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("utf-8")

@pytest.fixture
def service():
    return PreprocessingService()

def test_brown_spot_is_found(service, leaf_image):
    result = service.analyze(leaf_image)

    assert result is not None
    assert len(result.lesions) == 1
    assert 90 <= result.overall_health <= 99
    assert result.method == "color_segmentation"

    lesion = result.lesions[0]
    assert lesion.id == "lesion_1"
    assert abs(lesion.bbox.x + lesion.bbox.width / 2 - 0.5) < 0.05
    assert abs(lesion.bbox.y + lesion.bbox.height / 2 - 0.5) < 0.05
    assert 0 < lesion.area < 0.05
    assert lesion.severity == "moderate"

def test_healthy_leaf_has_no_lesions(service):
    result = service.analyze(encode(Image.new("RGB", (64, 64), (30, 140, 40))))

    assert result.lesions == []
    assert result.overall_health == 100

def test_data_url_is_accepted(service, leaf_image):
    result = service.analyze(f"data:image/png;base64,{leaf_image}")
    assert result is not None and len(result.lesions) == 1

def test_image_without_foliage_returns_none(service):
    assert service.analyze(encode(Image.new("RGB", (64, 64), (255, 255, 255)))) is None

@pytest.mark.parametrize("image_ref", ["", "notanimage", base64.b64encode(b"plain bytes").decode()])
def test_undecodable_image_returns_none(service, image_ref):
    assert service.analyze(image_ref) is None

async def test_analyze_async(service, leaf_image):
    result = await service.analyze_async(leaf_image)
    assert result.overall_health == service.analyze(leaf_image).overall_health

def test_diagonal_cells_are_separate_lesions(service):
    mask = np.zeros((64, 64), dtype=bool)
    mask[0:16, 0:16] = True
    mask[16:32, 16:32] = True
    mask[48:64, 32:64] = True

    lesions = service._lesions(mask)

    assert [l.id for l in lesions] == ["lesion_1", "lesion_2", "lesion_3"]
    assert lesions[0].area == 0.0625
    assert lesions[0].severity == "moderate"
    assert lesions[1].bbox.x == 0.25 and lesions[1].bbox.y == 0.25

    merged = lesions[2]
    assert (merged.bbox.x, merged.bbox.y, merged.bbox.width, merged.bbox.height) == (0.5, 0.75, 0.5, 0.25)
    assert merged.area == 0.125
    assert merged.severity == "severe"
    assert merged.confidence == 1.0
