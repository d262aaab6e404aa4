# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Collection for loading cryptographic keys and signing credentials with them.

Anything providing `sign` can act as the signer of the status list credentials,
the key configuration below signs them as compact JWS (vc+jwt).
"""

import os
import time
from typing import Annotated, Protocol
from functools import cache

from fastapi import Depends
from jwcrypto import jwk, jws, common as jw_common


class Signer(Protocol):
    def sign(self, payload: dict) -> str:
        """Signs the credential document, returning the secured credential"""
        ...


def _load_key_file(key_file: str) -> str:
    with open(key_file) as f:
        return f.read()


def _load_key(env_var: str, file: str) -> str:
    key = os.getenv(env_var)
    if not key:
        key = _load_key_file(file)
    return key


class KeyConfiguration:
    """
    Holds Public & Private Keys
    """

    @staticmethod
    def load(key_folder: str = "cert"):
        public_key = _load_key(env_var="SIGNING_KEY_PUBLIC", file=f"{key_folder}/ec_public.pem")
        private_key = _load_key(env_var="SIGNING_KEY_PRIVATE", file=f"{key_folder}/ec_private.pem")
        signing_algorithm = os.getenv("SIGNING_ALGORITHM", "ES512")
        return KeyConfiguration(public_key, private_key, signing_algorithm)

    def __init__(self, public_key: str, private_key: str, signing_algorithm: str):
        """
        Keys are the pem bytes utf-8 encoded
        """
        self._public_key: str = public_key
        self._private_key: str = private_key
        self.signing_algorithm: str = signing_algorithm
        self.public_jwk = jwk.JWK.from_pem(public_key.encode())
        self.private_jwk = jwk.JWK.from_pem(private_key.encode())

    def get_pk(self):
        return self._public_key

    def encode_jwt(self, payload: dict, header: dict = None) -> str:
        if not header:
            header = {}
        if 'alg' not in header:
            header['alg'] = self.signing_algorithm
            header['typ'] = 'vc+jwt'

        encoded_claims = jw_common.json_encode(payload)
        encoded_header = jw_common.json_encode(header)
        signer = jws.JWS(encoded_claims)
        signer.add_signature(key=self.private_jwk, protected=encoded_header)
        return signer.serialize(compact=True)

    def sign(self, payload: dict) -> str:
        """
        Secures a W3C credential document as JWT
        https://www.w3.org/TR/vc-data-model-2.0/#json-web-token-extensions
        """
        issuer = payload.get("issuer")
        claims = {
            "iss": issuer.get("id") if isinstance(issuer, dict) else issuer,
            "iat": round(time.time()),
            "jti": payload.get("id"),
            "vc": payload,
        }
        return self.encode_jwt({k: v for k, v in claims.items() if v is not None})


@cache
def get_key_configuration() -> KeyConfiguration:
    return KeyConfiguration.load()


inject = Annotated[KeyConfiguration, Depends(get_key_configuration)]
