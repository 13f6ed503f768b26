import pytest

from piped_proxy.errors import (
    DisallowedHostError,
    InvalidHostError,
    NoHostError,
)
from piped_proxy.proxy.hosts import (
    ALLOWED_DOMAINS,
    ResolvedTarget,
    host_from_path,
    is_allowed_host,
    registrable_domain,
    resolve_host,
    validate_host,
)


class TestResolveHost:
    def test_thumbnail_path(self):
        assert resolve_host({}, "/vi/abc/default.jpg") == "i.ytimg.com"

    @pytest.mark.parametrize("path", ["/vi_webp/abc/default.webp", "/sb/abc/storyboard3_L1/M0.jpg"])
    def test_other_thumbnail_prefixes(self, path):
        assert resolve_host({}, path) == "i.ytimg.com"

    @pytest.mark.parametrize("path", ["/ggpht/abc=s88", "/a/abc=s88", "/ytc/abc=s88"])
    def test_avatar_prefixes(self, path):
        assert resolve_host({}, path) == "yt3.ggpht.com"

    def test_host_embedded_in_path(self):
        assert resolve_host({}, "/host/example.com/x") == "example.com"

    def test_host_embedded_in_path_overrides_prefix(self):
        assert host_from_path("/vi/host/lh3.googleusercontent.com/x") == (
            "lh3.googleusercontent.com"
        )

    def test_host_embedded_without_trailing_path(self):
        assert host_from_path("/host/example.com") == "example.com"

    def test_explicit_host_takes_precedence(self):
        assert resolve_host({"host": "foo.com"}, "/vi/abc/default.jpg") == "foo.com"

    def test_explicit_host_beats_hls_chunk_host(self):
        query = {"host": "a.googlevideo.com", "hls_chunk_host": "b.googlevideo.com"}

        assert resolve_host(query, "/videoplayback") == "a.googlevideo.com"

    def test_hls_chunk_host_used_without_host(self):
        query = {"hls_chunk_host": "r3---sn-abc.googlevideo.com"}

        assert resolve_host(query, "/videoplayback") == "r3---sn-abc.googlevideo.com"

    def test_empty_host_parameter_falls_through(self):
        assert resolve_host({"host": ""}, "/vi/abc/default.jpg") == "i.ytimg.com"

    def test_unknown_path_resolves_to_empty(self):
        assert resolve_host({}, "/videoplayback") == ""


class TestAllowlist:
    @pytest.mark.parametrize("host", ["", "localhost", "youtube"])
    def test_fewer_than_two_labels_rejected(self, host):
        assert not is_allowed_host(host)

    @pytest.mark.parametrize("domain", sorted(ALLOWED_DOMAINS))
    def test_allowlisted_domains_accepted(self, domain):
        assert is_allowed_host(domain)
        assert is_allowed_host(f"sub.{domain}")
        assert is_allowed_host(f"a.b.{domain.upper()}")

    @pytest.mark.parametrize(
        "host",
        ["example.com", "youtube.com.evil.net", "notyoutube.org", "googlevideo.co"],
    )
    def test_other_domains_rejected(self, host):
        assert not is_allowed_host(host)

    def test_registrable_domain(self):
        assert registrable_domain("R1---SN-abc.GoogleVideo.com") == "googlevideo.com"
        assert registrable_domain("localhost") == ""


class TestValidateHost:
    def test_empty_host(self):
        with pytest.raises(NoHostError) as exc_info:
            validate_host("")

        assert exc_info.value.message == "No host in query parameters."

    def test_single_label(self):
        with pytest.raises(InvalidHostError) as exc_info:
            validate_host("localhost")

        assert exc_info.value.message == "Invalid hostname."

    def test_disallowed(self):
        with pytest.raises(DisallowedHostError) as exc_info:
            validate_host("example.com")

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Non YouTube domains are not supported."

    @pytest.mark.parametrize(
        "host",
        [
            "evil.example/.youtube.com",
            "evil.example?.youtube.com",
            "evil.example#.youtube.com",
            "evil.example:443/.googlevideo.com",
            "user@evil.example.ytimg.com",
            "i.ytimg.com:8443",
            "bad\nhost.googlevideo.com",
        ],
    )
    def test_rejects_anything_but_a_bare_hostname(self, host):
        with pytest.raises(InvalidHostError):
            validate_host(host)

    def test_allowed_returns_host(self):
        assert validate_host("i.ytimg.com") == "i.ytimg.com"


def test_resolved_target_url():
    assert ResolvedTarget("i.ytimg.com", "/vi/a/b.jpg", "").url == (
        "https://i.ytimg.com/vi/a/b.jpg"
    )
    assert ResolvedTarget("r.googlevideo.com", "/videoplayback", "id=1").url == (
        "https://r.googlevideo.com/videoplayback?id=1"
    )
