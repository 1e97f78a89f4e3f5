import pytest

import sign_url
from file_proxy.utils.url_signer import SignedRequestView, verify


@pytest.mark.unit
class TestSignUrlCli:
    def test_prints_verifiable_url(self, capsys):
        exit_code = sign_url.main(
            ["get", "http://host.org/files/a.txt?v=2", "--expires-in", "60", "--secret", "S"]
        )

        assert exit_code == 0
        signed = capsys.readouterr().out.strip()
        assert signed.startswith("http://host.org/files/a.txt?v=2&expiration=")
        assert verify(SignedRequestView.from_url("GET", signed), "S").matches is True

    def test_defaults_to_configured_secret(self, capsys, credentials):
        sign_url.main(["HEAD", "http://host.org/files/a.txt"])

        signed = capsys.readouterr().out.strip()
        assert verify(SignedRequestView.from_url("HEAD", signed), credentials).matches is True

    def test_relative_url_fails(self, capsys):
        assert sign_url.main(["GET", "/files/a.txt", "--secret", "S"]) == 1
        assert capsys.readouterr().out == ""

    def test_unknown_method_rejected(self):
        with pytest.raises(SystemExit):
            sign_url.main(["PATCH", "http://host.org/a"])
