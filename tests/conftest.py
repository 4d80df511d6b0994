"""Shared fixtures for htauth tests"""

import pytest

HTPASSWD_LINES = [
    "test:{SHA}qvTGHdzF6KLavt4PO0gs2a6pQ00=",
    "test2:$apr1$a0j62R97$mYqFkloXH0/UOaUnAiV2b0",
    "test16:$apr1$JI4wh3am$AmhephVqLTUyAVpFQeHZC0",
    "test3:$2y$05$ih3C91zUBSTFcAh2mQnZYuob0UOZVEf16wl/ukgjDhjvj.xgM1WwS",
    "testmd5:$apr1$0.KbAJur$4G9MiqUjDLCuihkMfmg6e1",
    "testmd5broken:$apr10.KbAJur$4G9MiqUjDLCuihkMfmg6e1",
]

HTDIGEST_LINES = [
    "test:example.com:aa78524fceb0e50fd8ca96dd818b8cf9",
]


@pytest.fixture
def htpasswd_file(tmp_path):
    """htpasswd file with users in every supported scheme"""
    path = tmp_path / "test.htpasswd"
    path.write_text("\n".join(HTPASSWD_LINES) + "\n")
    return path


@pytest.fixture
def htdigest_file(tmp_path):
    """htdigest file with a single user in realm example.com"""
    path = tmp_path / "test.htdigest"
    path.write_text("\n".join(HTDIGEST_LINES) + "\n")
    return path
