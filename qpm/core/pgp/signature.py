"""分离式签名的生成与校验

校验规则按顺序执行，任何一步失败都是致命错误:
  1. 解码后必须恰好是一个 v4 签名报文          -> MalformedSignature
  2. 摘要算法必须是 SHA-256 或 SHA-512          -> UnsupportedHashAlgorithm
  3. 签名类型必须是二进制文档签名               -> UnsupportedSignatureType
  4. 用公钥验证签名                             -> SignatureMismatch
"""

from __future__ import annotations

import logging

from pgpy import PGPKey, PGPSignature
from pgpy.constants import HashAlgorithm, SignatureType
from pgpy.errors import PGPError
from pgpy.packet import Packet
from pgpy.packet.packets import SignatureV4
from pgpy.types import Armorable

from qpm.core.exceptions import (
    MalformedSignature,
    SignatureMismatch,
    UnsupportedHashAlgorithm,
    UnsupportedSignatureType,
)
from qpm.core.pgp.keys import PARSE_ERRORS, SecretKey, fingerprint_hex

logger = logging.getLogger(__name__)

ACCEPTED_HASHES = frozenset((HashAlgorithm.SHA256, HashAlgorithm.SHA512))


def _encode(payload: str | bytes) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else payload


def _name(value: object) -> str:
    return getattr(value, "name", str(value))


def sign(
    payload: str | bytes,
    key: SecretKey,
    *,
    hash_algo: HashAlgorithm = HashAlgorithm.SHA256,
) -> bytes:
    """对 payload 生成 armor 格式的二进制文档分离式签名"""
    with key.unlocked() as signer:
        sig = signer.sign(_encode(payload), hash=hash_algo)
    logger.info("已签名: key=%s hash=%s", key.fingerprint_hex, hash_algo.name)
    return str(sig).encode("ascii")


def _count_signature_packets(data: bytes) -> int:
    body = bytearray(Armorable.ascii_unarmor(data)["body"])
    count = 0
    while body:
        remaining = len(body)
        packet = Packet(body)
        if not isinstance(packet, SignatureV4):
            raise MalformedSignature(f"签名文件含非 v4 签名报文: {type(packet).__name__}")
        if len(body) >= remaining:
            raise MalformedSignature("签名报文无法解析")
        count += 1
    return count


def read_signature(signature: bytes | str) -> PGPSignature:
    """解码 armor 并解析唯一的签名报文"""
    data = _encode(signature)
    if not data.strip():
        raise MalformedSignature("签名文件为空")
    try:
        count = _count_signature_packets(data)
        sig = PGPSignature.from_blob(data)
    except PARSE_ERRORS as e:
        raise MalformedSignature(f"签名无法解码: {e}") from e
    if count != 1:
        raise MalformedSignature(f"签名文件应只含一个签名报文，实际 {count} 个")
    return sig


def verify(payload: str | bytes, signature: bytes | str, public_key: PGPKey) -> PGPSignature:
    """校验分离式签名，成功返回解析后的签名，失败抛 SignatureError 子类"""
    sig = read_signature(signature)

    if sig.hash_algorithm not in ACCEPTED_HASHES:
        raise UnsupportedHashAlgorithm(f"签名摘要算法不是 SHA-256/SHA-512: {_name(sig.hash_algorithm)}")
    if sig.type != SignatureType.BinaryDocument:
        raise UnsupportedSignatureType(f"不是二进制文档签名: {_name(sig.type)}")

    try:
        result = public_key.verify(_encode(payload), sig)
    except (PGPError, NotImplementedError) as e:
        raise SignatureMismatch(f"签名无法用该公钥校验: {e}") from e
    if not result:
        raise SignatureMismatch("签名与内容不匹配")
    logger.info("签名校验通过: key=%s", fingerprint_hex(public_key))
    return sig
