import pytest

from brettgcp import language

from conftest import respond

ANNOTATED = {
    "documentSentiment": {"score": 0.4, "magnitude": 1.2},
    "language": "en",
    "sentences": [{"text": {"content": "Star Wars is a great movie.", "beginOffset": 0},
                   "sentiment": {"score": 0.9, "magnitude": 0.9}}],
    "tokens": [{"text": {"content": "Star", "beginOffset": 0}, "partOfSpeech": {"tag": "NOUN"},
                "dependencyEdge": {"headTokenIndex": 1, "label": "NN"}, "lemma": "Star"}],
    "entities": [{"name": "Star Wars", "type": "WORK_OF_ART", "salience": 0.7,
                  "metadata": {"wikipedia_url": "https://en.wikipedia.org/wiki/Star_Wars"},
                  "mentions": [{"text": {"content": "Star Wars", "beginOffset": 0}, "type": "PROPER"}]}],
}

@pytest.fixture()
def svc(mock_service):
    return mock_service(language)

def test_annotate_all_features(svc):
    method = respond(svc, "documents", "annotateText", response=ANNOTATED)
    a = language.document("Star Wars is a great movie.").annotate()
    assert method.call_args.kwargs == {"body": {
        "document": {"type": "PLAIN_TEXT", "content": "Star Wars is a great movie."},
        "encodingType": "UTF8",
        "features": {"extractSyntax": True, "extractEntities": True, "extractDocumentSentiment": True}}}
    assert a.sentiment.score == 0.4
    assert a.language == "en"
    assert str(a.sentences[0]) == "Star Wars is a great movie."
    assert a.sentences[0].sentiment.magnitude == 0.9
    assert a.tokens[0].part_of_speech == "NOUN"
    assert a.tokens[0].head_token_index == 1
    e = a.entities[0]
    assert e.wikipedia_url.endswith("Star_Wars")
    assert e.mention_texts == ["Star Wars"]

def test_annotate_selected_feature(svc):
    method = respond(svc, "documents", "annotateText", response={"documentSentiment": {"score": -0.2}})
    a = language.document("meh").annotate(sentiment=True)
    assert method.call_args.kwargs["body"]["features"] == {
        "extractSyntax": False, "extractEntities": False, "extractDocumentSentiment": True}
    assert a.sentiment.magnitude == 0.0
    assert a.entities == []

def test_gcs_document(svc):
    method = respond(svc, "documents", "analyzeEntities", response={"entities": [{"name": "Paris", "type": "LOCATION"}]})
    entities = language.document("gs://my-bucket/review.html", type="html", language="fr").entities()
    assert method.call_args.kwargs == {"body": {
        "document": {"type": "HTML", "language": "fr", "gcsContentUri": "gs://my-bucket/review.html"},
        "encodingType": "UTF8"}}
    assert str(entities[0]) == "Paris (LOCATION)"

def test_sentiment_and_syntax(svc):
    respond(svc, "documents", "analyzeSentiment", response={"documentSentiment": {"score": 0.8, "magnitude": 0.8}})
    respond(svc, "documents", "analyzeSyntax", response=ANNOTATED)
    doc = language.text("Star Wars is a great movie.")
    assert doc.sentiment().score == 0.8
    assert [str(t) for t in doc.syntax().tokens] == ["Star"]

def test_invalid_type():
    with pytest.raises(ValueError):
        language.document("x", type="PDF")
