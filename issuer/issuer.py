# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Status List Issuer
Assigns status list indices to credentials and publishes the revocation state

Using Specifications

W3C Verifiable Credential
https://www.w3.org/TR/vc-data-model-2.0/

StatusList2021
https://www.w3.org/TR/2023/WD-vc-status-list-20230427/

JWT
https://datatracker.ietf.org/doc/html/rfc7519
"""

from common.fastapi_extensions import ExtendedFastAPI

from issuer.exception.handler import configure_exception_handlers
import issuer.route.status_list as status_list
import issuer.route.credential as credential
import issuer.route.health as health
import issuer.config as conf

app = ExtendedFastAPI(conf.IssuerConfig)

app.include_router(status_list.router)
app.include_router(credential.router)
app.include_router(health.router)

configure_exception_handlers(app)
