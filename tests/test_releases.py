import pytest
import requests

from frida_installer.components.releases import (
    Asset,
    ReleaseDescriptor,
    ReleaseFeed,
    expected_asset_name,
    find_asset,
    has_android_assets,
    is_newer_version,
    parse_release,
    version_from_info,
)
from frida_installer.utils.events import ErrorKind, InstallerError
from tests.conftest import FakeResponse


def release_payload(tag="16.1.2", names=("frida-server-16.1.2-android-arm64.xz",), **extra):
    data = {
        "tag_name": tag,
        "name": f"Frida {tag}",
        "published_at": "2023-07-01T10:00:00Z",
        "prerelease": False,
        "assets": [{"name": n, "browser_download_url": f"https://example.invalid/{n}"} for n in names],
    }
    data.update(extra)
    return data


class TestParseRelease:
    def test_should_read_expected_fields(self):
        release = parse_release(release_payload())
        assert release.tag_name == "16.1.2"
        assert release.name == "Frida 16.1.2"
        assert release.prerelease is False
        assert release.assets == (Asset("frida-server-16.1.2-android-arm64.xz",
                                        "https://example.invalid/frida-server-16.1.2-android-arm64.xz"),)

    def test_should_fall_back_to_tag_for_missing_name(self):
        data = release_payload()
        del data["name"]
        assert parse_release(data).name == "16.1.2"

    @pytest.mark.parametrize("payload", [None, [], {"assets": []}, {"tag_name": "1.0"}, {"tag_name": "", "assets": []}])
    def test_should_reject_unexpected_shapes(self, payload):
        assert parse_release(payload) is None

    def test_should_skip_malformed_assets(self):
        data = release_payload()
        data["assets"].append({"name": "frida-server-x"})
        data["assets"].append("garbage")
        assert len(parse_release(data).assets) == 1

    def test_should_mark_prerelease_in_display_name(self):
        assert parse_release(release_payload(prerelease=True)).display_name == "16.1.2 (Pre-release)"


class TestFindAsset:
    """Exact, case sensitive selection of the server artifact."""

    def test_should_build_expected_name(self):
        assert expected_asset_name("16.1.2", "arm64") == "frida-server-16.1.2-android-arm64.xz"

    def test_should_return_url_of_single_match(self):
        release = parse_release(release_payload(names=(
            "frida-server-16.1.2-android-arm.xz",
            "frida-server-16.1.2-android-arm64.xz",
            "frida-gadget-16.1.2-android-arm64.so.xz",
        )))
        assert find_asset(release, "arm64") == "https://example.invalid/frida-server-16.1.2-android-arm64.xz"

    def test_should_return_none_without_match(self):
        release = parse_release(release_payload(names=("frida-server-16.1.2-android-x86.xz",)))
        assert find_asset(release, "arm64") is None

    def test_should_not_match_different_case(self):
        release = parse_release(release_payload(names=("Frida-Server-16.1.2-Android-ARM64.xz",)))
        assert find_asset(release, "arm64") is None

    def test_should_refuse_to_choose_between_duplicates(self):
        release = ReleaseDescriptor("16.1.2", "16.1.2", "", False, (
            Asset("frida-server-16.1.2-android-arm64.xz", "https://a.invalid/1"),
            Asset("frida-server-16.1.2-android-arm64.xz", "https://a.invalid/2"),
        ))
        assert find_asset(release, "arm64") is None

    def test_should_pass_unknown_arch_into_name(self):
        release = parse_release(release_payload(names=("frida-server-16.1.2-android-riscv64.xz",)))
        assert find_asset(release, "riscv64") == "https://example.invalid/frida-server-16.1.2-android-riscv64.xz"

    def test_should_detect_android_assets(self):
        assert has_android_assets(parse_release(release_payload())) is True
        assert has_android_assets(parse_release(release_payload(names=("frida-server-16.1.2-linux-x86.xz",)))) is False


class TestVersions:
    @pytest.mark.parametrize(
        "candidate,installed,expected",
        [
            ("16.1.2", "16.1.1", True),
            ("16.10.0", "16.9.9", True),
            ("16.1.2", "16.1.2", False),
            ("16.0.0", "16.1.2", False),
            ("custom-build", "16.1.2", True),
        ],
    )
    def test_should_compare_release_versions(self, candidate, installed, expected):
        assert is_newer_version(candidate, installed) is expected

    def test_should_extract_version_from_info(self):
        assert version_from_info("16.1.2 (arm64)") == "16.1.2"
        assert version_from_info(None) is None
        assert version_from_info("") is None


class TestReleaseFeed:
    def installation(self):
        return {
            "github_api_url": "https://api.example.invalid/latest",
            "releases_url": "https://api.example.invalid/releases",
            "per_page": 10,
            "user_agent": "frida-installer-tests",
        }

    def test_should_fetch_latest_release(self, session):
        session.get.return_value = FakeResponse(json_data=release_payload())
        feed = ReleaseFeed(self.installation(), session=session, timeout=(1, 2))

        release = feed.get_latest_release()

        assert release.tag_name == "16.1.2"
        session.get.assert_called_once_with("https://api.example.invalid/latest", params=None, timeout=(1, 2))
        assert session.headers["User-Agent"] == "frida-installer-tests"

    def test_should_raise_on_http_error(self, session):
        session.get.return_value = FakeResponse(status_code=403)
        with pytest.raises(InstallerError) as excinfo:
            ReleaseFeed(self.installation(), session=session).get_latest_release()
        assert str(excinfo.value) == "Failed to fetch release info: 403"
        assert excinfo.value.kind == ErrorKind.TRANSFER

    def test_should_raise_on_not_modified(self, session):
        session.get.return_value = FakeResponse(status_code=304, json_data=release_payload())
        with pytest.raises(InstallerError) as excinfo:
            ReleaseFeed(self.installation(), session=session).get_latest_release()
        assert str(excinfo.value) == "Failed to fetch release info: 304"

    def test_should_map_timeouts(self, session):
        session.get.side_effect = requests.ConnectTimeout("slow")
        with pytest.raises(InstallerError) as excinfo:
            ReleaseFeed(self.installation(), session=session).get_latest_release()
        assert excinfo.value.kind == ErrorKind.TIMEOUT

    def test_should_map_connection_errors(self, session):
        session.get.side_effect = requests.ConnectionError("offline")
        with pytest.raises(InstallerError) as excinfo:
            ReleaseFeed(self.installation(), session=session).get_latest_release()
        assert excinfo.value.kind == ErrorKind.TRANSFER

    def test_should_raise_on_invalid_json(self, session):
        session.get.return_value = FakeResponse(body=b"<html>")
        with pytest.raises(InstallerError):
            ReleaseFeed(self.installation(), session=session).get_latest_release()

    def test_should_return_none_for_unexpected_payload(self, session):
        session.get.return_value = FakeResponse(json_data={"message": "Not Found"})
        assert ReleaseFeed(self.installation(), session=session).get_latest_release() is None

    def test_should_list_only_android_releases(self, session):
        session.get.return_value = FakeResponse(json_data=[
            release_payload("16.1.3"),
            release_payload("16.1.2", names=("frida-16.1.2.tar.gz",)),
            {"unexpected": True},
            release_payload("16.1.1"),
        ])
        feed = ReleaseFeed(self.installation(), session=session)

        releases = feed.list_releases()

        assert [r.tag_name for r in releases] == ["16.1.3", "16.1.1"]
        assert session.get.call_args.kwargs["params"] == {"per_page": 10}

    def test_should_return_empty_list_for_non_list_payload(self, session):
        session.get.return_value = FakeResponse(json_data={"tag_name": "16.1.2"})
        assert ReleaseFeed(self.installation(), session=session).list_releases() == []

    def test_should_create_session_when_none_given(self):
        feed = ReleaseFeed(self.installation())
        assert isinstance(feed.session, requests.Session)
