# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Verification requests asking a holder for a KYC/AML or a Credit Score attestation

DIF Presentation Exchange
https://identity.foundation/presentation-exchange/spec/v1.0.0/
"""

import time
import uuid

import common.model.dif_presentation_exchange as dif

ONE_MONTH = 1000 * 60 * 60 * 24 * 30
"""Validity of a verification request in milliseconds"""

KYC_PRESENTATION_DEFINITION_ID = "KYCAMLPresentationDefinition"
CREDIT_SCORE_PRESENTATION_DEFINITION_ID = "CreditScorePresentationDefinition"

VERIFICATION_REQUEST_CONTEXT = [
    "https://www.w3.org/2018/credentials/v1",
    "https://identity.foundation/presentation-exchange/definition/v1",
]
VERIFICATION_REQUEST_TYPE = ["VerifiablePresentation", "PresentationDefinition"]

ISSUER_PATHS = ["$.issuer", "$.vc.issuer", "$.iss", "$.issuer.id"]


def _required_fields(attestation: str, description: str, required_fields: dict[str, str]) -> list[dif.Constraint]:
    """
    One constraint per field, each looked up in the credential, the vc claim of a JWT and a bare attestation
    """
    return [
        dif.Constraint(
            path=[
                f"$.credentialSubject.{attestation}.{field}",
                f"$.vc.credentialSubject.{attestation}.{field}",
                f"$.{attestation}.{field}",
            ],
            purpose=f"The {description} is missing the field: '{field}'.",
            predicate="required",
            filter=dif.Filter(type=field_type),
        )
        for field, field_type in required_fields.items()
    ]


def _trusted_authority(description: str, trusted_authorities: list[str]) -> dif.Constraint:
    return dif.Constraint(
        path=ISSUER_PATHS,
        purpose=f"We can only verify {description} credentials attested by a trusted authority.",
        filter=dif.Filter(type="string", pattern="|".join(trusted_authorities)),
    )


def _input_descriptor(id: str, name: str, purpose: str, schema_uri: str, fields: list[dif.Constraint]) -> dif.InputDescriptor:
    return dif.InputDescriptor(
        id=id,
        name=name,
        purpose=purpose,
        input_schema=[dif.SchemaReference(uri=schema_uri, required=True)],
        constraints=dif.Constraints(
            statuses=dif.Statuses(active=dif.StatusConstraint(directive=dif.StatusDirective.REQUIRED)),
            fields=fields,
        ),
    )


def kyc_presentation_definition(trusted_authorities: list[str] | None = None) -> dif.PresentationDefinition:
    fields = _required_fields(
        "KYCAMLAttestation",
        "KYC/AML Attestation",
        {"authorityId": "string", "approvalDate": "string"},
    )
    if trusted_authorities:
        fields.append(_trusted_authority("KYC/AML", trusted_authorities))

    return dif.PresentationDefinition(
        id=KYC_PRESENTATION_DEFINITION_ID,
        input_descriptors=[
            _input_descriptor(
                id="kycaml_input",
                name="Proof of KYC",
                purpose="Please provide a valid credential from a KYC/AML issuer",
                schema_uri="https://verity.id/schemas/identity/1.0.0/KYCAMLAttestation",
                fields=fields,
            )
        ],
    )


def credit_score_presentation_definition(trusted_authorities: list[str] | None = None, minimum_credit_score: float | None = None) -> dif.PresentationDefinition:
    fields = _required_fields(
        "CreditScoreAttestation",
        "Credit Score Attestation",
        {"score": "number", "scoreType": "string", "provider": "string"},
    )
    if trusted_authorities:
        fields.append(_trusted_authority("Credit Score", trusted_authorities))
    # A minimum of 0 does not restrict anything
    if minimum_credit_score:
        fields.append(
            dif.Constraint(
                path=[
                    "$.credentialSubject.CreditScoreAttestation.score",
                    "$.vc.credentialSubject.CreditScoreAttestation.score",
                    "$.CreditScoreAttestation.score",
                ],
                purpose=f"We can only verify Credit Score credentials that are above {minimum_credit_score}.",
                filter=dif.Filter(type="number", exclusiveMinimum=minimum_credit_score),
            )
        )

    return dif.PresentationDefinition(
        id=CREDIT_SCORE_PRESENTATION_DEFINITION_ID,
        input_descriptors=[
            _input_descriptor(
                id="creditScore_input",
                name="Proof of Credit Score",
                purpose="Please provide a valid credential from a Credit Score issuer",
                schema_uri="https://verity.id/schemas/identity/1.0.0/CreditScoreAttestation",
                fields=fields,
            )
        ],
    )


def _verification_request(
    presentation_definition: dif.PresentationDefinition,
    sender: str,
    reply_url: str,
    reply_to: str,
    callback_url: str | None,
    id: str | None,
) -> dif.VerificationRequest:
    now = round(time.time() * 1000)
    return dif.VerificationRequest(
        context=VERIFICATION_REQUEST_CONTEXT,
        type=VERIFICATION_REQUEST_TYPE,
        request=dif.VerificationRequestDetails(
            id=id or str(uuid.uuid4()),
            sender=sender,
            created_time=now,
            expires_time=now + ONE_MONTH,
            reply_url=reply_url,
            reply_to=[reply_to],
            callback_url=callback_url,
            challenge=str(uuid.uuid4()),
        ),
        presentation_definition=presentation_definition,
    )


def generate_kyc_verification_request(
    sender: str,
    reply_url: str,
    reply_to: str,
    callback_url: str | None = None,
    trusted_authorities: list[str] | None = None,
    id: str | None = None,
) -> dif.VerificationRequest:
    """
    Creates the request for a KYC/AML attestation, valid for one month.
    sender is the DID of the verifier, replies are expected at reply_url.
    """
    return _verification_request(
        kyc_presentation_definition(trusted_authorities),
        sender,
        reply_url,
        reply_to,
        callback_url,
        id,
    )


def generate_credit_score_verification_request(
    sender: str,
    reply_url: str,
    reply_to: str,
    callback_url: str | None = None,
    trusted_authorities: list[str] | None = None,
    minimum_credit_score: float | None = None,
    id: str | None = None,
) -> dif.VerificationRequest:
    """Creates the request for a Credit Score attestation, valid for one month"""
    return _verification_request(
        credit_score_presentation_definition(trusted_authorities, minimum_credit_score),
        sender,
        reply_url,
        reply_to,
        callback_url,
        id,
    )
