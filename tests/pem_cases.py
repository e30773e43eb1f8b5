import base64
import logging
from os.path import dirname, join, realpath
from unittest import TestCase

import pem as pemlib
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from pemutil import *

logging.basicConfig(level=logging.DEBUG)


def load_sample(filename: str) -> str:
    with open(join(dirname(realpath(__file__)), 'pemsamples', filename), 'r', encoding='ascii') as f:
        return f.read()


def _block(label: str, body: str = 'F00') -> str:
    return f'-----BEGIN {label}-----\n{body}\n-----END {label}-----'


class PemItemTypeCases(TestCase):
    def test_classification_by_first_line(self):
        cases = {
            'CERTIFICATE': PemItemType.CERTIFICATE,
            'CERTIFICATE REQUEST': PemItemType.CERTIFICATE_REQUEST,
            'X509 CRL': PemItemType.X509_CRL,
            'PKCS7': PemItemType.PKCS7,
            'CMS': PemItemType.CMS,
            'EC PARAMETERS': PemItemType.EC_PARAMETERS,
            'PUBLIC KEY': PemItemType.PUBLIC_KEY,
            'RSA PRIVATE KEY': PemItemType.RSA_PRIVATE_KEY,
            'EC PRIVATE KEY': PemItemType.EC_PRIVATE_KEY,
            'ENCRYPTED PRIVATE KEY': PemItemType.ENCRYPTED_PRIVATE_KEY,
            'PRIVATE KEY': PemItemType.PRIVATE_KEY,
        }
        for label, expected in cases.items():
            self.assertEqual(PemItem.parse(_block(label)).item_type, expected, label)

    def test_earlier_marker_shadows_longer_marker(self):
        # 声明顺序靠前的标记优先，即使后面有更完整的匹配
        self.assertEqual(PemItem.parse(_block('TRUSTED CERTIFICATE')).item_type, PemItemType.CERTIFICATE)
        self.assertEqual(PemItem.parse(_block('X509 CERTIFICATE')).item_type, PemItemType.CERTIFICATE)
        self.assertEqual(PemItem.parse(_block('ATTRIBUTE CERTIFICATE')).item_type, PemItemType.CERTIFICATE)
        self.assertEqual(PemItem.parse(_block('NEW CERTIFICATE REQUEST')).item_type,
                         PemItemType.CERTIFICATE_REQUEST)
        self.assertEqual(PemItem.parse(_block('RSA PUBLIC KEY')).item_type, PemItemType.PUBLIC_KEY)

    def test_from_marker(self):
        self.assertIs(PemItemType.from_marker('X509 CRL'), PemItemType.X509_CRL)
        self.assertIsNone(PemItemType.from_marker('X509'))
        self.assertEqual(str(PemItemType.RSA_PUBLIC_KEY), 'RSA PUBLIC KEY')


class PemItemCases(TestCase):
    def test_parse_certificate(self):
        text = load_sample('ca.cert.pem')
        item = PemItem.parse(text)
        print(item)
        self.assertTrue(item.is_certificate())
        self.assertFalse(item.is_private_key())
        self.assertEqual(item.content[0], 0x30)

        body = ''.join(line for line in text.strip().splitlines() if not line.startswith('-----'))
        self.assertEqual(base64.b64encode(item.content).decode('ascii'), body)

    def test_private_key_types(self):
        for filename in ('privatekey-rsa-2048.pem', 'privatekey-rsa-2048.pkcs1.pem', 'privatekey-ec-256.sec1.pem'):
            item = PemItem.parse(load_sample(filename))
            self.assertTrue(item.is_private_key(), filename)
            self.assertFalse(item.is_certificate(), filename)
        self.assertTrue(PemItem.parse(_block('ENCRYPTED PRIVATE KEY')).is_private_key())

    def test_certificate_request_is_not_certificate(self):
        item = PemItem.parse(load_sample('localhost.csr.pem'))
        self.assertEqual(item.item_type, PemItemType.CERTIFICATE_REQUEST)
        self.assertFalse(item.is_certificate())

    def test_public_key(self):
        private_spec = PemObject.from_key(load_sample('privatekey-rsa-2048.pem')).get_rsa_key_spec()
        for filename in ('publickey-rsa-2048.pem', 'publickey-rsa-2048.pkcs1.pem'):
            item = PemItem.parse(load_sample(filename))
            self.assertTrue(item.is_public_key())
            self.assertEqual(item.get_rsa_public_key_spec(), private_spec.public_key_spec)

    def test_crlf_line_breaks(self):
        text = load_sample('ca.cert.pem').replace('\n', '\r\n')
        self.assertEqual(PemItem.parse(text), PemItem.parse(load_sample('ca.cert.pem')))

    def test_parse_is_idempotent(self):
        text = load_sample('localhost.cert.pem')
        first, second = PemItem.parse(text), PemItem.parse(text)
        self.assertEqual(first, second)
        self.assertEqual(hash(first), hash(second))

    def test_unknown_type(self):
        with self.assertRaises(UnknownPemType):
            PemItem.parse(_block('FOO BAR'))
        with self.assertRaises(UnknownPemType):
            PemItem.parse('MIIBIjANBgkqhkiG9w0BAQEFAAOCAQ8AMIIBCgKCAQEA')

    def test_invalid_base64(self):
        with self.assertRaises(InvalidEncoding):
            PemItem.parse(_block('CERTIFICATE', '!!!not base64!!!'))

    def test_try_parse(self):
        result = PemItem.try_parse(_block('FOO'))
        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, UnknownPemType)
        with self.assertRaises(UnknownPemType):
            result.unwrap()

        result = PemItem.try_parse(_block('CERTIFICATE'))
        self.assertTrue(result.ok)
        self.assertEqual(result.unwrap().item_type, PemItemType.CERTIFICATE)


class PemReaderCases(TestCase):
    def test_parse_none_returns_empty_list(self):
        self.assertEqual(PemReader.parse(None), [])

    def test_parse_empty_string_returns_empty_list(self):
        self.assertEqual(PemReader.parse(''), [])
        self.assertEqual(PemReader.parse(' \n\t\n'), [])

    def test_parse_single_block(self):
        self.assertEqual(len(PemReader.parse(_block('CERTIFICATE'))), 1)

    def test_parse_certificate_and_private_key(self):
        items = PemReader.parse(_block('CERTIFICATE') + '\n' + _block('RSA PRIVATE KEY'))
        self.assertEqual([i.item_type for i in items], [PemItemType.CERTIFICATE, PemItemType.RSA_PRIVATE_KEY])

        items = PemReader.parse(_block('RSA PRIVATE KEY') + '\n' + _block('CERTIFICATE'))
        self.assertEqual([i.item_type for i in items], [PemItemType.RSA_PRIVATE_KEY, PemItemType.CERTIFICATE])

    def test_certificate_chain_keeps_order(self):
        ca, leaf = load_sample('ca.cert.pem'), load_sample('localhost.cert.pem')
        items = PemReader.parse(leaf + ca + '\n\n' + leaf)
        self.assertEqual(len(items), 3)
        self.assertTrue(all(i.item_type == PemItemType.CERTIFICATE for i in items))
        self.assertEqual(items[0], items[2])
        self.assertNotEqual(items[0], items[1])
        self.assertEqual(items[1], PemItem.parse(ca))

    def test_blocks_without_separator(self):
        text = _block('CERTIFICATE') + _block('PRIVATE KEY')
        self.assertEqual(len(PemReader.parse(text)), 2)

    def test_malformed_block_aborts_bundle(self):
        with self.assertRaises(UnknownPemType):
            PemReader.parse(_block('CERTIFICATE') + '\n' + _block('UNKNOWN THING'))
        result = PemReader.try_parse(_block('CERTIFICATE') + '\n' + _block('CERTIFICATE', '***'))
        self.assertIsNone(result.value)
        self.assertIsInstance(result.error, InvalidEncoding)

    def test_matches_pem_library(self):
        bundle = load_sample('localhost.cert.pem') + load_sample('ca.cert.pem') + \
                 load_sample('privatekey-rsa-2048.pkcs1.pem')
        expected = pemlib.parse(bundle)
        items = PemReader.parse(bundle)
        self.assertEqual(len(items), len(expected))
        self.assertIsInstance(expected[0], pemlib.Certificate)
        self.assertIsInstance(expected[2], pemlib.RSAPrivateKey)
        for item, obj in zip(items, expected):
            self.assertEqual(item.content, obj.decoded_payload)

    def test_load_file(self):
        path = join(dirname(realpath(__file__)), 'pemsamples', 'privatekey-ec-256.sec1.pem')
        items = PemReader.load(path)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].item_type, PemItemType.EC_PRIVATE_KEY)
        with open(path, 'r') as f:
            self.assertEqual(PemReader.load(f), items)


class PemObjectCases(TestCase):
    def test_from_key_headers(self):
        for filename in ('privatekey-rsa-2048.pem', 'privatekey-rsa-2048.pkcs1.pem', 'privatekey-ec-256.sec1.pem'):
            text = load_sample(filename)
            obj = PemObject.from_key(text)
            self.assertEqual(obj.content, PemItem.parse(text).content, filename)

    def test_from_key_inside_bundle(self):
        text = 'subject=CN = localhost\n' + load_sample('localhost.cert.pem') + \
               load_sample('publickey-rsa-2048.pem') + load_sample('privatekey-rsa-2048.pkcs1.pem')
        obj = PemObject.from_key(text)
        self.assertEqual(obj, PemObject.from_key(load_sample('privatekey-rsa-2048.pkcs1.pem')))

    def test_from_key_is_case_insensitive(self):
        text = load_sample('privatekey-rsa-2048.pkcs1.pem').replace('RSA PRIVATE KEY', 'rsa private key')
        self.assertEqual(PemObject.from_key(text).content,
                         PemObject.from_key(load_sample('privatekey-rsa-2048.pkcs1.pem')).content)

    def test_key_not_found(self):
        with self.assertRaises(KeyNotFound):
            PemObject.from_key(load_sample('localhost.cert.pem'))
        with self.assertRaises(KeyNotFound):
            PemObject.from_key(load_sample('publickey-rsa-2048.pem'))
        result = PemObject.try_from_key('')
        self.assertIsInstance(result.error, KeyNotFound)

    def test_rsa_key_spec(self):
        text = load_sample('privatekey-rsa-2048.pkcs1.pem')
        spec = PemObject.from_key(text).get_rsa_key_spec()
        numbers = load_pem_private_key(text.encode('ascii'), password=None).private_numbers()
        self.assertEqual(spec.modulus, numbers.public_numbers.n)
        self.assertEqual(spec.public_exponent, 65537)
        self.assertEqual(spec.private_exponent, numbers.d)
        self.assertEqual(spec.crt_coefficient, numbers.iqmp)

        pkcs8_spec = PemObject.from_key(load_sample('privatekey-rsa-2048.pem')).get_rsa_key_spec()
        self.assertEqual(spec, pkcs8_spec)

    def test_rsa_key_spec_from_ec_key(self):
        with self.assertRaises(KeySpecError):
            PemObject.from_key(load_sample('privatekey-ec-256.sec1.pem')).get_rsa_key_spec()
        with self.assertRaises(KeySpecError):
            PemObject.from_key(load_sample('privatekey-ec-256.pem')).get_rsa_key_spec()
