import base64
import binascii
from typing import Any, Callable, NamedTuple, Optional


class PemException(Exception):
    """密钥材料解析过程中所有异常的基类"""

    def __init__(self, *args):
        super().__init__(*args)


class UnknownPemType(PemException):
    """PEM块首行中没有任何已知的类型标记"""


class InvalidEncoding(PemException):
    """Base64数据无法解码"""


class KeyNotFound(PemException):
    """文本中未找到私钥块"""


class KeySpecError(PemException):
    """解码后的数据不符合所选算法的密钥结构"""


class UnrecognizedFormat(PemException):
    """既不是PEM格式也不是DER格式"""


class UnsupportedKeyType(PemException):
    """不支持的密钥类型或密钥格式"""


class CertificateException(PemException):
    """证书数据无法解析为X.509证书"""


class ParseResult(NamedTuple):
    """解析结果，value和error有且只有一个不是None

    典型使用方式如下：
    result = PemItem.try_parse(text)
    if result.ok:
        item = result.value
    else:
        print(result.error)
    """
    value: Any
    error: Optional[PemException]

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self):
        """返回解析结果，解析失败时抛出原异常"""
        if self.error is not None:
            raise self.error
        return self.value


def attempt(func: Callable, *args, **kwargs) -> ParseResult:
    """调用解析函数，将PemException转换为ParseResult"""
    try:
        return ParseResult(func(*args, **kwargs), None)
    except PemException as e:
        return ParseResult(None, e)


def decode_base64(text: str) -> bytes:
    """Base64解码，允许省略末尾的填充字符'='

    :param text: 不含换行的Base64字符串
    :return: 解码后的字节串
    """
    if len(text) % 4 and not text.endswith('='):
        text += '=' * (4 - len(text) % 4)
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidEncoding('格式错误：Base64数据无法解码/Invalid Base64 content.') from e
