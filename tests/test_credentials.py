"""Tests for the saved-password store and the password acquisition policy."""
import hashlib
import re

import pytest

import za7z


KEY = bytes(range(32))
OTHER_KEY = bytes(reversed(range(32)))


class TestMachineKey:
    def test_key_is_sha256_of_identity(self, monkeypatch):
        monkeypatch.setattr(za7z.socket, "gethostname", lambda: "box")
        monkeypatch.setattr(za7z._getpass_mod, "getuser", lambda: "alice")
        monkeypatch.setattr(za7z.sys, "platform", "linux")
        za7z.derive_machine_key.cache_clear()
        try:
            key = za7z.derive_machine_key()
        finally:
            za7z.derive_machine_key.cache_clear()
        assert key == hashlib.sha256(b"box-alice-linux").digest()
        assert len(key) == 32

    def test_key_is_stable(self):
        assert za7z.derive_machine_key() == za7z.derive_machine_key()


class TestEncryptDecrypt:
    def test_round_trip(self):
        blob = za7z.encrypt_password("s3cret pass", KEY)
        assert za7z.decrypt_password(blob, KEY) == "s3cret pass"

    def test_blob_is_hex_iv_colon_hex_ciphertext(self):
        blob = za7z.encrypt_password("pw", KEY)
        assert re.fullmatch(r"[0-9a-f]{32}:[0-9a-f]{32}", blob)

    def test_each_encryption_uses_fresh_iv(self):
        a = za7z.encrypt_password("same", KEY)
        b = za7z.encrypt_password("same", KEY)
        assert a != b
        assert za7z.decrypt_password(a, KEY) == za7z.decrypt_password(b, KEY) == "same"

    def test_other_key_gives_none(self):
        blob = za7z.encrypt_password("hunter2", KEY)
        assert za7z.decrypt_password(blob, OTHER_KEY) is None

    def test_unicode_password(self):
        blob = za7z.encrypt_password("pässwörd密码", KEY)
        assert za7z.decrypt_password(blob, KEY) == "pässwörd密码"

    @pytest.mark.parametrize("password", ["pass\tword", "pa\x1bss", "line\nbreak", " padded "])
    def test_control_characters_round_trip(self, password):
        blob = za7z.encrypt_password(password, KEY)
        assert za7z.decrypt_password(blob, KEY) == password

    @pytest.mark.parametrize(
        "blob",
        [
            "",
            "nocolon",
            "zz:zz",
            "00:00",
            "a:b:c",
            "00112233445566778899aabbccddeeff:",
            "00112233445566778899aabbccddeeff:0011",
        ],
    )
    def test_malformed_blob_gives_none(self, blob):
        assert za7z.decrypt_password(blob, KEY) is None

    def test_truncated_blob_gives_none(self):
        blob = za7z.encrypt_password("a longer password that spans blocks", KEY)
        assert za7z.decrypt_password(blob[:-32], KEY) != "a longer password that spans blocks"
        assert za7z.decrypt_password(blob[:-5], KEY) is None


class TestCredentialStore:
    def test_load_absent_is_none(self, store):
        assert not store.exists()
        assert store.load() is None

    def test_save_creates_directories_and_loads(self, tmp_path):
        s = za7z.CredentialStore(tmp_path / "a" / "b" / "password.enc", key_func=lambda: KEY)
        s.save("pw1")
        assert s.exists()
        assert s.load() == "pw1"

    def test_save_overwrites(self, store):
        store.save("first")
        store.save("second")
        assert store.load() == "second"

    def test_file_never_contains_plaintext(self, store):
        store.save("visible-password")
        assert "visible-password" not in store.path.read_text(encoding="ascii")

    def test_load_with_other_machine_key_is_none(self, tmp_path):
        path = tmp_path / "password.enc"
        za7z.CredentialStore(path, key_func=lambda: KEY).save("pw")
        assert za7z.CredentialStore(path, key_func=lambda: OTHER_KEY).load() is None

    def test_garbage_file_is_none(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("not a credential", encoding="ascii")
        assert store.load() is None

    def test_clear(self, store):
        store.save("pw")
        assert store.clear() is True
        assert not store.exists()
        assert store.clear() is False

    def test_save_and_load_control_characters(self, store):
        store.save("pa\x1bss\tword")
        assert store.load() == "pa\x1bss\tword"

    def test_clear_unremovable_path_raises_credential_error(self, store):
        store.path.mkdir(parents=True)
        with pytest.raises(za7z.CredentialError):
            store.clear()
        assert store.path.is_dir()

    def test_empty_password_refused(self, store):
        with pytest.raises(za7z.PasswordError):
            store.save("")


class TestAcquirePassword:
    def test_explicit_password_wins_and_is_not_saved(self, store, prompts):
        store.save("saved")
        pw = za7z.acquire_password(za7z.Options(password="given"), store)
        assert pw == "given"
        assert store.load() == "saved"
        assert prompts.asked == []

    def test_saved_password_used(self, store, prompts):
        store.save("saved")
        assert za7z.acquire_password(za7z.Options(), store) == "saved"
        assert prompts.asked == []

    def test_reset_prompts_even_when_saved(self, store, prompts):
        store.save("saved")
        prompts.secrets = ["fresh"]
        prompts.answers = ["n"]
        assert za7z.acquire_password(za7z.Options(reset_password=True), store) == "fresh"
        assert store.load() == "saved"

    def test_prompted_password_saved_on_yes(self, store, prompts):
        prompts.secrets = ["typed"]
        prompts.answers = ["Yes"]
        assert za7z.acquire_password(za7z.Options(), store) == "typed"
        assert store.load() == "typed"

    def test_prompted_password_not_saved_on_no(self, store, prompts):
        prompts.secrets = ["typed"]
        prompts.answers = ["no"]
        za7z.acquire_password(za7z.Options(), store)
        assert not store.exists()

    def test_unreadable_saved_password_reprompts(self, store, prompts):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("deadbeef:cafe", encoding="ascii")
        prompts.secrets = ["typed"]
        prompts.answers = [""]
        assert za7z.acquire_password(za7z.Options(), store) == "typed"

    def test_empty_prompt_is_fatal(self, store, prompts):
        prompts.secrets = [""]
        with pytest.raises(za7z.PasswordError):
            za7z.acquire_password(za7z.Options(), store)

    def test_empty_explicit_password_is_fatal(self, store):
        with pytest.raises(za7z.PasswordError):
            za7z.acquire_password(za7z.Options(password=""), store)


@pytest.mark.parametrize("answer", ["y", "Y", "yes", "YES", "yeah", "yep", " y "])
def test_yes_answers(answer):
    assert za7z.is_yes(answer)


@pytest.mark.parametrize("answer", ["", "n", "no", "nope", "maybe", "1", "y!"])
def test_non_yes_answers(answer):
    assert not za7z.is_yes(answer)
