"""标识符生成单元测试

测试内容：
1. ID 格式与前缀规整
2. 冲突重试与耗尽
3. API 密钥生成与摘要
"""

import re
import string

import pytest
from beehive.core.exceptions import GenerationExhaustedError
from beehive.core.ids import (
    ID_ALPHABET,
    default_prefix,
    generate_id,
    generate_key,
    hash_key,
)


class TestGenerateId:
    def test_format(self):
        task_id = generate_id(set(), "demo")
        assert re.fullmatch(r"demo-[a-z0-9]{4}", task_id)

    def test_fallback_prefix(self):
        assert generate_id(set()).startswith("bh-")

    def test_avoids_existing(self):
        """后缀长度为 1 时只剩一个可用值，必须命中它"""
        existing = {f"p-{c}" for c in ID_ALPHABET if c != "z"}
        assert generate_id(existing, "p", suffix_length=1, max_attempts=10_000) == "p-z"

    def test_exhausted(self):
        existing = {f"p-{c}" for c in ID_ALPHABET}
        with pytest.raises(GenerationExhaustedError) as exc_info:
            generate_id(existing, "p", suffix_length=1, max_attempts=50)
        assert exc_info.value.retryable is True
        assert exc_info.value.attempts == 50


class TestDefaultPrefix:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Demo", "demo"),
            ("my-project_2", "myproject2"),
            ("averyverylongprojectname", "averyveryl"),
            ("---", "bh"),
            ("", "bh"),
        ],
    )
    def test_sanitize(self, name, expected):
        assert default_prefix(name) == expected


class TestKeys:
    def test_admin_key_prefix(self):
        key = generate_key("admin")
        assert key.startswith("bh_ak_")
        assert len(key) == len("bh_ak_") + 48
        assert set(key[len("bh_ak_") :]) <= set(string.hexdigits.lower())

    def test_bee_key_prefix(self):
        assert generate_key("bee").startswith("bh_bk_")

    def test_keys_are_unique(self):
        assert generate_key("bee") != generate_key("bee")

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            generate_key("queen")

    def test_hash_is_sha256_hex(self):
        digest = hash_key("bh_ak_secret")
        assert re.fullmatch(r"[0-9a-f]{64}", digest)
        assert digest == hash_key("bh_ak_secret")
