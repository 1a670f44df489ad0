"""
Cloud Translation (v2): translate text, detect its language and list the
supported languages.
https://cloud.google.com/translate/docs/reference/rest/v2/translate

An API key is all Translation needs: set gcp.developer_key (or developer_key
in the config file) and no other credentials are looked for.

    t = translate("Hello world!", to="la")
    print(t.text)              # "Salve mundi!"
    print(t.origin)            # "en", detected
"""
from dataclasses import dataclass, field
from functools import partial
from typing import List

from .access import gcp, execute
from .resources import GoogleCloudResourceBase, compact

_get_service = partial(gcp.require_service, "translate", "v2")


def _unwrap(response: dict|None) -> dict:
    """Responses come back inside "data" unless the client already stripped it."""
    response = response or {}
    return response.get("data", response)


@dataclass
class Translation():
    """
    text is the translated text, origin the source language (as given or
    detected) and to the target language.
    """
    text: str
    to: str
    origin: str|None = field(default=None)
    model: str|None = field(default=None)
    detected: bool = field(default=False)

    def __str__(self) -> str:
        return self.text

    def is_detected(self) -> bool:
        return self.detected


@dataclass
class Detection():
    """
    One detected language for a text.  confidence is 0..1 where the API gives it.
    """
    text: str
    language: str
    confidence: float|None = field(default=None)
    is_reliable: bool|None = field(default=None)

    def __str__(self) -> str:
        return self.language


@dataclass
class Language(GoogleCloudResourceBase):
    """https://cloud.google.com/translate/docs/reference/rest/v2/languages"""
    language: str|None = field(default=None)
    name: str|None = field(default=None)

    def __bool__(self) -> bool:
        return bool(self.language)

    def __str__(self) -> str:
        return f"{self.language}:{self.name}" if self.name else str(self.language)

    @property
    def code(self) -> str|None:
        return self.language


def translate(*text: str, to: str|None = None, from_: str|None = None, format: str|None = None,
              model: str|None = None, cid: str|None = None) -> Translation|List[Translation]:
    """
    https://cloud.google.com/translate/docs/reference/rest/v2/translate
    One text gives one Translation, several give a list in the same order.
    from_ is detected when not given.  format is "text" or "html".
    model is "base" or "nmt".
    """
    if not to:
        raise ValueError("A target language (to=) is required")
    if not text:
        raise ValueError("Nothing to translate")
    params = compact({"q": list(text), "target": to, "source": from_, "format": format,
                      "model": model, "cid": None if cid is None else [cid]})
    response = _unwrap(execute(_get_service().translations().list(**params)))
    translations = []
    for t in response.get("translations", []):
        detected = t.get("detectedSourceLanguage")
        translations.append(Translation(text=t.get("translatedText", ""), to=to,
                                        origin=detected or from_, model=t.get("model"),
                                        detected=detected is not None))
    return translations[0] if len(text) == 1 else translations


def detect(*text: str) -> Detection|List[Detection]:
    """
    https://cloud.google.com/translate/docs/reference/rest/v2/detect
    The most likely language for each text, one Detection or a list.
    """
    if not text:
        raise ValueError("Nothing to detect")
    response = _unwrap(execute(_get_service().detections().list(q=list(text))))
    results = []
    for t, found in zip(text, response.get("detections", [])):
        # each text gets a list of candidates, best first
        best = found[0] if found else {}
        results.append(Detection(text=t, language=best.get("language", "und"),
                                 confidence=best.get("confidence"), is_reliable=best.get("isReliable")))
    return results[0] if len(text) == 1 else results


def languages(language: str|None = None, model: str|None = None) -> List[Language]:
    """
    https://cloud.google.com/translate/docs/reference/rest/v2/languages
    With language the names are given in that language, otherwise only codes.
    """
    params = compact({"target": language, "model": model})
    response = _unwrap(execute(_get_service().languages().list(**params)))
    return [Language.from_base(l) for l in response.get("languages", [])]
