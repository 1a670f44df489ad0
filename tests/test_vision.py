import base64

import pytest

from brettgcp import vision
from brettgcp.errors import InvalidArgumentError

from conftest import respond

@pytest.fixture()
def svc(mock_service):
    return mock_service(vision)

def test_image_sources(tmp_path):
    path = tmp_path / "face.jpg"
    path.write_bytes(b"\xff\xd8jpeg")
    assert vision.image(str(path)).to_base() == {"content": base64.b64encode(b"\xff\xd8jpeg").decode()}
    assert vision.image(b"raw").to_base() == {"content": base64.b64encode(b"raw").decode()}
    assert vision.image("gs://bucket/face.jpg").to_base() == {"source": {"imageUri": "gs://bucket/face.jpg"}}
    with open(path, "rb") as f:
        assert vision.image(f).content == b"\xff\xd8jpeg"
    with pytest.raises(FileNotFoundError):
        vision.image(str(tmp_path / "missing.jpg"))

def test_faces(svc):
    method = respond(svc, "images", "annotate", response={"responses": [{"faceAnnotations": [{
        "boundingPoly": {"vertices": [{"x": 1, "y": 2}, {"x": 3, "y": 2}, {"x": 3, "y": 4}, {"x": 1, "y": 4}]},
        "landmarks": [{"type": "NOSE_TIP", "position": {"x": 2.0, "y": 3.0, "z": 0.1}}],
        "detectionConfidence": 0.9,
        "joyLikelihood": "VERY_LIKELY",
        "angerLikelihood": "VERY_UNLIKELY",
    }]}]})
    faces = vision.image("gs://bucket/face.jpg").faces(5)
    assert method.call_args.kwargs == {"body": {"requests": [{
        "image": {"source": {"imageUri": "gs://bucket/face.jpg"}},
        "features": [{"type": "FACE_DETECTION", "maxResults": 5}]}]}}
    face = faces[0]
    assert face.bounds[0] == (1, 2)
    assert face.landmark("nose_tip") == (2.0, 3.0, 0.1)
    assert face.is_joy()
    assert not face.is_anger()
    assert face.confidence == 0.9

def test_annotate_many(svc):
    method = respond(svc, "images", "annotate", response={"responses": [
        {"labelAnnotations": [{"mid": "/m/0k4j", "description": "car", "score": 0.98}],
         "textAnnotations": [{"description": "STOP\n", "locale": "en"}, {"description": "STOP"}],
         "safeSearchAnnotation": {"adult": "VERY_UNLIKELY", "violence": "LIKELY"}},
        {"landmarkAnnotations": [{"description": "Eiffel Tower", "score": 0.9,
                                  "locations": [{"latLng": {"latitude": 48.85, "longitude": 2.29}}]}],
         "imagePropertiesAnnotation": {"dominantColors": {"colors": [
             {"color": {"red": 255, "green": 128}, "score": 0.5, "pixelFraction": 0.2}]}}},
    ]})
    a1, a2 = vision.annotate(b"one", "https://example.com/two.png", labels=3, landmarks=2,
                             text=True, safe_search=True, properties=True)
    features = method.call_args.kwargs["body"]["requests"][0]["features"]
    assert [f["type"] for f in features] == ["LANDMARK_DETECTION", "LABEL_DETECTION", "TEXT_DETECTION",
                                             "SAFE_SEARCH_DETECTION", "IMAGE_PROPERTIES"]
    assert str(a1.labels[0]) == "car:0.98"
    assert a1.text.locale == "en"
    assert [str(w) for w in a1.text.words] == ["STOP"]
    assert a1.safe_search.is_violence()
    assert not a1.safe_search.is_adult()
    assert a2.landmarks[0].lat_lngs == [(48.85, 2.29)]
    assert a2.properties.colors[0].rgb == "ff8000"

def test_all_features_by_default(svc):
    method = respond(svc, "images", "annotate", response={"responses": [{}]})
    a = vision.annotate(b"img")
    assert len(method.call_args.kwargs["body"]["requests"][0]["features"]) == 7
    assert a.faces == [] and a.text is None

def test_per_image_error(svc):
    respond(svc, "images", "annotate", response={"responses": [
        {"error": {"code": 3, "message": "Bad image data."}}]})
    with pytest.raises(InvalidArgumentError) as e:
        vision.image(b"junk").labels()
    assert e.value.status_code == 400
