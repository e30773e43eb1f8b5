import re
import logging
from enum import Enum
from typing import Optional, Union

from .commons import InvalidEncoding, ParseResult, UnrecognizedFormat, attempt, decode_base64

logger = logging.getLogger(__name__)

PEM_PREFIX = '-----'
PEM_PREFIX_BEGIN = PEM_PREFIX + 'BEGIN'
PEM_PREFIX_END = PEM_PREFIX + 'END'

# 首行BEGIN、末行END，中间内容可以跨行
_PEM_PATTERN = re.compile(r'^-{5}BEGIN.+-{5}[\s\S]+-{5}END.+-{5}$')
_ESCAPED_WHITESPACE_PATTERN = re.compile(r'\\[nrt]')
_WHITESPACE_PATTERN = re.compile(r'\s+')


class EncodingValidator:
    """判断文本是PEM格式还是DER格式，仅根据标记判断，不做完整的ASN.1校验"""

    @staticmethod
    def is_pem(content: str) -> bool:
        return _PEM_PATTERN.match(content.strip()) is not None

    @staticmethod
    def is_der(content: Union[str, bytes, bytearray]) -> bool:
        """字节串非空且不含PEM标记；字符串则还需要能按Base64解码为非空字节串"""
        if isinstance(content, (bytes, bytearray)):
            return len(content) > 0 and PEM_PREFIX_BEGIN.encode('ascii') not in content
        if PEM_PREFIX_BEGIN in content or EncodingValidator.is_pem(content):
            return False
        try:
            decoded = decode_base64(_WHITESPACE_PATTERN.sub('', content))
        except InvalidEncoding:
            return False
        return len(decoded) > 0


def remove_escaped_whitespace(content: str) -> str:
    """去除JSON或环境变量中常见的字面量\\n、\\r、\\t"""
    return _ESCAPED_WHITESPACE_PATTERN.sub('', content)


def unescape_whitespace(content: str) -> str:
    """将字面量\\n、\\r还原为换行，字面量\\t去除"""
    return content.replace('\\r\\n', '\n').replace('\\n', '\n').replace('\\r', '\n').replace('\\t', '')


class PrivateKeyEncoding(Enum):
    PEM = 'pem'
    DER = 'der'
    UNKNOWN = 'unknown'


class PrivateKeyEncodingValidator:

    @staticmethod
    def get_format(private_key: Optional[str]) -> PrivateKeyEncoding:
        """判断私钥字符串的编码格式

        :param private_key: 私钥字符串，可以是PEM文本或Base64编码的DER数据
        :return: 空值返回UNKNOWN
        """
        if not private_key:
            return PrivateKeyEncoding.UNKNOWN

        normalized = remove_escaped_whitespace(private_key)
        if EncodingValidator.is_pem(normalized):
            logger.debug('私钥编码格式: PEM')
            return PrivateKeyEncoding.PEM
        if EncodingValidator.is_der(normalized):
            logger.debug('私钥编码格式: DER')
            return PrivateKeyEncoding.DER

        raise UnrecognizedFormat('格式错误：私钥既不是PEM也不是DER格式'
                                 '/Private key is neither PEM nor DER encoded.')

    @staticmethod
    def try_get_format(private_key: Optional[str]) -> ParseResult:
        return attempt(PrivateKeyEncodingValidator.get_format, private_key)
