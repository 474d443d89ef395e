import json

import pytest

from rollprogress.errors import CorruptedSaveError, SaveValidationError
from rollprogress.persistence.codec import decode_profile, dump_payload, encode_profile, load_payload
from rollprogress.persistence.models import FORMAT_VERSION, SaveProfile
from rollprogress.persistence.obfuscation import deobfuscate, obfuscate, xor_bytes

KEY = "RollABallGame2025"


def test_obfuscated_payload_is_base64_and_not_plain_json():
    payload = obfuscate('{"player_name": "Ada"}', KEY)
    assert "player_name" not in payload
    assert deobfuscate(payload, KEY) == '{"player_name": "Ada"}'


def test_obfuscation_handles_non_ascii_text():
    text = "München, Marienplatz"
    assert deobfuscate(obfuscate(text, KEY), KEY) == text


def test_xor_requires_key():
    with pytest.raises(ValueError):
        xor_bytes(b"abc", b"")


def test_deobfuscate_rejects_garbage():
    with pytest.raises(CorruptedSaveError):
        deobfuscate("!!! not base64 !!!", KEY)


def test_encode_is_canonical_json():
    profile = SaveProfile(player_name="Ada", level_completions={"level2": True, "level1": True})
    text = encode_profile(profile)
    data = json.loads(text)
    assert data["format_version"] == FORMAT_VERSION
    assert list(data["level_completions"]) == ["level1", "level2"]
    assert encode_profile(decode_profile(text)) == text


def test_decode_rejects_future_version():
    data = SaveProfile().to_dict()
    data["format_version"] = FORMAT_VERSION + 1
    with pytest.raises(SaveValidationError):
        decode_profile(json.dumps(data))


@pytest.mark.parametrize("version", ["v1", None, [1]])
def test_decode_rejects_malformed_version(version):
    with pytest.raises(SaveValidationError):
        decode_profile(json.dumps({"format_version": version}))
    with pytest.raises(CorruptedSaveError):
        load_payload(obfuscate(json.dumps({"format_version": version}), KEY), KEY)


def test_decode_rejects_negative_score():
    data = SaveProfile().to_dict()
    data["total_score"] = -5
    with pytest.raises(SaveValidationError):
        decode_profile(json.dumps(data))


def test_load_payload_maps_validation_errors_to_corruption():
    with pytest.raises(CorruptedSaveError):
        load_payload("not json at all", None)
    with pytest.raises(CorruptedSaveError):
        load_payload(obfuscate("[1, 2, 3]", KEY), KEY)


def test_dump_payload_plain_when_no_key():
    profile = SaveProfile(player_name="Ada")
    assert dump_payload(profile, None) == encode_profile(profile)
    assert load_payload(dump_payload(profile, KEY), KEY).player_name == "Ada"


def test_unlocked_ids_are_removed_from_progress_on_decode():
    data = SaveProfile().to_dict()
    data["unlocked_achievements"] = ["collector", "collector", "explorer"]
    data["achievement_progress"] = {"collector": 1, "collect_10": 4}
    profile = decode_profile(json.dumps(data))
    assert profile.unlocked_achievements == ["collector", "explorer"]
    assert profile.achievement_progress == {"collect_10": 4}
