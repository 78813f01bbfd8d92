"""Tests for the REST and fixture source implementations."""

from unittest.mock import MagicMock

import pytest
import requests
import yaml
from github import GithubException

from prtrace_core.errors import ConfigurationError, SourceError
from prtrace_core.models import PrReference
from prtrace_core.sources.confluence import (
    RestConfluenceSource,
    escape_cql,
    html_to_text,
    resolve_confluence_api_base,
)
from prtrace_core.sources.fixtures import load_fixture_sources
from prtrace_core.sources.github import RestGithubSource, get_checks
from prtrace_core.sources.http import JsonClient
from prtrace_core.sources.jira import (
    RestJiraSource,
    adf_to_text,
    extract_sections,
    linked_issue_keys,
    resolve_jira_api_base,
)
from prtrace_core.utils.keys import compile_key_pattern

REF = PrReference(owner="acme", repo="platform", pr_number=42)


def _response(status=200, body=None):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    return resp


def _session(mocker, routes):
    """A real Session whose GETs are answered by URL suffix; unknown URLs get a 404."""
    session = requests.Session()

    def fake_get(url, params=None, timeout=None):
        for suffix, (status, body) in routes.items():
            if url.endswith(suffix):
                return _response(status, body)
        return _response(404)

    mocker.patch.object(session, "get", side_effect=fake_get)
    return session


def _issue(key, description="", parent=None, links=()):
    fields = {"summary": f"{key} summary", "description": description, "subtasks": [], "issuelinks": []}
    if parent:
        fields["parent"] = {"key": parent}
    fields["issuelinks"] = [{"outwardIssue": {"key": k}} for k in links]
    return {"key": key, "fields": fields}


# ---------------------------------------------------------------------------
# JsonClient
# ---------------------------------------------------------------------------


class TestJsonClient:
    def test_basic_auth_when_email_set(self):
        client = JsonClient("Jira", "https://jira.acme.io/", token="tok", email="me@acme.io")
        assert client.session.auth == ("me@acme.io", "tok")
        assert client.base_url == "https://jira.acme.io"

    def test_bearer_auth_without_email(self):
        client = JsonClient("Jira", "https://jira.acme.io", token="pat")
        assert client.session.headers["Authorization"] == "Bearer pat"

    def test_returns_decoded_body(self, mocker):
        session = _session(mocker, {"/things": (200, {"ok": True})})
        client = JsonClient("Jira", "https://jira.acme.io", session=session)
        assert client.get_json("things") == {"ok": True}

    def test_404_allowed_returns_none(self, mocker):
        client = JsonClient("Jira", "https://jira.acme.io", session=_session(mocker, {}))
        assert client.get_json("missing", allow_missing=True) is None

    def test_404_not_allowed_raises(self, mocker):
        client = JsonClient("Jira", "https://jira.acme.io", session=_session(mocker, {}))
        with pytest.raises(SourceError, match="status 404"):
            client.get_json("missing")

    def test_server_error_raises(self, mocker):
        session = _session(mocker, {"/boom": (500, None)})
        client = JsonClient("Confluence", "https://wiki.acme.io", session=session)
        with pytest.raises(SourceError, match="Confluence.*status 500"):
            client.get_json("boom", allow_missing=True)

    def test_network_error_wrapped(self, mocker):
        session = requests.Session()
        mocker.patch.object(session, "get", side_effect=requests.ConnectionError("refused"))
        client = JsonClient("Jira", "https://jira.acme.io", session=session)
        with pytest.raises(SourceError, match="refused"):
            client.get_json("x")

    def test_non_json_body_raises(self, mocker):
        session = requests.Session()
        resp = _response(200)
        resp.json.side_effect = ValueError("not json")
        mocker.patch.object(session, "get", return_value=resp)
        client = JsonClient("Jira", "https://jira.acme.io", session=session)
        with pytest.raises(SourceError, match="non-JSON"):
            client.get_json("x")


# ---------------------------------------------------------------------------
# Jira
# ---------------------------------------------------------------------------


class TestJiraHelpers:
    @pytest.mark.parametrize(
        "domain, expected",
        [
            ("https://jira.acme.io", "https://jira.acme.io/rest/api/2"),
            ("https://jira.acme.io/", "https://jira.acme.io/rest/api/2"),
            ("https://acme.atlassian.net/rest/api/3", "https://acme.atlassian.net/rest/api/3"),
        ],
    )
    def test_resolve_api_base(self, domain, expected):
        assert resolve_jira_api_base(domain) == expected

    def test_adf_to_text(self):
        doc = {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": "Hello "}, {"type": "text", "text": "world"}]},
                {"type": "paragraph", "content": [{"type": "text", "text": "Bye"}]},
            ],
        }
        assert adf_to_text(doc) == "Hello \nworld\nBye"
        assert adf_to_text("plain") == "plain"
        assert adf_to_text(None) == ""

    def test_extract_sections(self):
        text = (
            "Intro line\n"
            "Acceptance Criteria: retries max 3\n"
            "- logs each retry\n"
            "NFR:\n"
            "* p99 under 200ms\n"
            "Risks:\n"
            "duplicate callbacks\n"
            "Testing requirements:\n"
            "- unit tests for retry count\n"
        )
        sections = extract_sections(text)
        assert sections == {
            "acceptance_criteria": ["retries max 3", "logs each retry"],
            "nfr": ["p99 under 200ms"],
            "risks": ["duplicate callbacks"],
            "testing_requirements": ["unit tests for retry count"],
        }

    def test_linked_issue_keys(self):
        raw = _issue("PROJ-1", parent="EPIC-9", links=["PROJ-2", "proj-3"])
        raw["fields"]["subtasks"] = [{"key": "PROJ-4"}]
        raw["fields"]["issuelinks"].append({"inwardIssue": {"key": "PROJ-2"}})
        assert linked_issue_keys(raw) == ["EPIC-9", "PROJ-4", "PROJ-2", "PROJ-3"]

    def test_linked_issue_keys_follow_key_pattern(self):
        raw = _issue("PROJ-1", parent="X-7", links=["PROJ-2"])
        assert linked_issue_keys(raw) == ["PROJ-2"]
        assert linked_issue_keys(raw, compile_key_pattern(r"[A-Z][A-Z0-9]*-\d+")) == ["X-7", "PROJ-2"]


class TestRestJiraSource:
    def _routes(self):
        return {
            "/issue/PROJ-1": (
                200,
                _issue(
                    "PROJ-1",
                    description="See https://acme.atlassian.net/wiki/pages/101\nAcceptance Criteria: retries",
                    parent="EPIC-1",
                    links=["PROJ-2"],
                ),
            ),
            "/issue/PROJ-1/remotelink": (
                200,
                [{"object": {"url": "https://acme.atlassian.net/wiki/pages/102"}}, {"object": {"url": "mailto:x"}}],
            ),
            "/issue/EPIC-1": (200, _issue("EPIC-1")),
            "/issue/PROJ-2": (200, _issue("PROJ-2", links=["PROJ-3"])),
            "/issue/PROJ-3": (200, _issue("PROJ-3")),
        }

    def test_fetch_without_expansion(self, mocker):
        source = RestJiraSource("https://jira.acme.io", token="t", session=_session(mocker, self._routes()))
        [issue] = source.fetch_issues(["proj-1"])

        assert issue.key == "PROJ-1"
        assert issue.summary == "PROJ-1 summary"
        assert issue.acceptance_criteria == ["retries"]
        assert issue.links == [
            "https://acme.atlassian.net/wiki/pages/101",
            "https://acme.atlassian.net/wiki/pages/102",
        ]

    def test_expansion_follows_links_breadth_first(self, mocker):
        source = RestJiraSource("https://jira.acme.io", session=_session(mocker, self._routes()))

        assert [i.key for i in source.fetch_issues(["PROJ-1"], expand_depth=1)] == ["PROJ-1", "EPIC-1", "PROJ-2"]
        assert [i.key for i in source.fetch_issues(["PROJ-1"], expand_depth=2)] == [
            "PROJ-1",
            "EPIC-1",
            "PROJ-2",
            "PROJ-3",
        ]

    def test_expansion_uses_configured_key_pattern(self, mocker):
        routes = {
            "/issue/PROJ-1": (200, _issue("PROJ-1", links=["X-7"])),
            "/issue/X-7": (200, _issue("X-7")),
        }
        default = RestJiraSource("https://jira.acme.io", session=_session(mocker, routes))
        custom = RestJiraSource(
            "https://jira.acme.io", session=_session(mocker, routes), key_pattern=r"[A-Z][A-Z0-9]*-\d+"
        )

        assert [i.key for i in default.fetch_issues(["PROJ-1"], expand_depth=1)] == ["PROJ-1"]
        assert [i.key for i in custom.fetch_issues(["PROJ-1"], expand_depth=1)] == ["PROJ-1", "X-7"]

    def test_missing_issue_skipped(self, mocker):
        source = RestJiraSource("https://jira.acme.io", session=_session(mocker, self._routes()))
        assert [i.key for i in source.fetch_issues(["NOPE-1", "PROJ-3"])] == ["PROJ-3"]

    def test_nothing_found_raises(self, mocker):
        source = RestJiraSource("https://jira.acme.io", session=_session(mocker, {}))
        with pytest.raises(SourceError, match="NOPE-1"):
            source.fetch_issues(["NOPE-1"])

    def test_empty_keys_returns_empty(self, mocker):
        source = RestJiraSource("https://jira.acme.io", session=_session(mocker, {}))
        assert source.fetch_issues([]) == []


# ---------------------------------------------------------------------------
# Confluence
# ---------------------------------------------------------------------------


class TestConfluenceHelpers:
    @pytest.mark.parametrize(
        "domain, expected",
        [
            ("https://acme.atlassian.net", "https://acme.atlassian.net/wiki/rest/api"),
            ("https://acme.atlassian.net/wiki", "https://acme.atlassian.net/wiki/rest/api"),
            ("https://wiki.acme.io/rest/api/", "https://wiki.acme.io/rest/api"),
        ],
    )
    def test_resolve_api_base(self, domain, expected):
        assert resolve_confluence_api_base(domain) == expected

    def test_html_to_text(self):
        markup = "<h1>Retry</h1><style>p{}</style><p>Max&nbsp;3 &amp; log</p>"
        assert html_to_text(markup) == "Retry Max 3 & log"

    def test_escape_cql(self):
        assert escape_cql('say "hi"') == 'say \\"hi\\"'


class TestRestConfluenceSource:
    def test_fetch_by_urls(self, mocker):
        routes = {
            "/content/101": (
                200,
                {"id": "101", "title": "Retry Design", "body": {"storage": {"value": "<p>Retry&nbsp;policy</p>"}}},
            ),
        }
        source = RestConfluenceSource("https://acme.atlassian.net", token="t", session=_session(mocker, routes))
        url = "https://acme.atlassian.net/wiki/spaces/ENG/pages/101/Retry"

        pages = source.fetch_by_urls([url, "https://acme.atlassian.net/wiki/spaces/ENG/pages/999", "https://x.io/none"])

        assert len(pages) == 1
        assert (pages[0].id, pages[0].title, pages[0].url) == ("101", "Retry Design", url)
        assert pages[0].content == "Retry policy"
        assert pages[0].source == "pr-link"

    def test_search(self, mocker):
        session = _session(
            mocker,
            {
                "/content/search": (
                    200,
                    {
                        "results": [
                            {
                                "id": "7",
                                "title": "Runbook",
                                "_links": {"base": "https://acme.atlassian.net/wiki", "webui": "/spaces/SRE/pages/7"},
                                "body": {"storage": {"value": "<p>steps</p>"}},
                            },
                            {"id": "8", "title": "Other"},
                        ]
                    },
                )
            },
        )
        source = RestConfluenceSource("https://acme.atlassian.net", session=session)

        [page] = source.search('retry "policy"', top_k=1)

        assert page.url == "https://acme.atlassian.net/wiki/spaces/SRE/pages/7"
        assert page.content == "steps"
        assert page.source == "keyword-query"
        params = session.get.call_args.kwargs["params"]
        assert params["cql"] == 'text ~ "retry \\"policy\\""'
        assert params["limit"] == 1

    def test_search_blank_query(self, mocker):
        session = _session(mocker, {})
        assert RestConfluenceSource("https://acme.atlassian.net", session=session).search("  ", top_k=3) == []
        session.get.assert_not_called()


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------


def _check_run(name, status, conclusion):
    run = MagicMock()
    run.name = name
    run.status = status
    run.conclusion = conclusion
    return run


@pytest.fixture
def github_client():
    client = MagicMock()
    repo = client.get_repo.return_value
    pr = repo.get_pull.return_value
    pr.title = "PROJ-1 Retry"
    pr.body = None
    pr.user.login = "alice"
    pr.base.ref = "main"
    pr.head.ref = "feature/retry"
    pr.head.sha = "abcdef123456"
    pr.html_url = "https://github.com/acme/platform/pull/42"

    changed = MagicMock()
    changed.filename = "src/retry.py"
    changed.patch = None
    pr.get_files.return_value = [changed]

    commit = MagicMock()
    commit.sha = "abc"
    commit.commit.message = "PROJ-1 retry"
    pr.get_commits.return_value = [commit]

    comment = MagicMock()
    comment.user.login = "bob"
    comment.body = "lgtm"
    pr.get_issue_comments.return_value = [comment]

    repo.get_commit.return_value.get_check_runs.return_value = [
        _check_run("unit", "completed", "success"),
        _check_run(None, "weird", "skipped"),
    ]
    return client


class TestRestGithubSource:
    def test_fetch_change(self, github_client):
        payload = RestGithubSource(token=None, client=github_client).fetch_change(REF)

        github_client.get_repo.assert_called_once_with("acme/platform")
        assert payload.metadata.title == "PROJ-1 Retry"
        assert payload.metadata.body == ""
        assert payload.metadata.author == "alice"
        assert payload.metadata.head_branch == "feature/retry"
        assert [(f.path, f.patch) for f in payload.files] == [("src/retry.py", "")]
        assert [c.message for c in payload.commits] == ["PROJ-1 retry"]
        assert [(c.author, c.body) for c in payload.comments] == [("bob", "lgtm")]
        assert [(c.name, c.status, c.conclusion) for c in payload.checks] == [
            ("unit", "completed", "success"),
            ("check-run", "completed", None),
        ]

    def test_checks_failure_returns_empty(self):
        repo = MagicMock()
        repo.get_commit.side_effect = GithubException(403, {"message": "forbidden"}, None)
        assert get_checks(repo, "abcdef") == []

    def test_checks_without_sha(self):
        repo = MagicMock()
        assert get_checks(repo, "") == []
        repo.get_commit.assert_not_called()

    def test_publish_comment(self, github_client):
        pr = github_client.get_repo.return_value.get_pull.return_value
        created = pr.create_issue_comment.return_value
        created.id = 991
        created.html_url = "https://github.com/acme/platform/pull/42#issuecomment-991"
        created.body = "Looks good"

        comment = RestGithubSource(token=None, client=github_client).publish_comment(REF, "Looks good")

        pr.create_issue_comment.assert_called_once_with("Looks good")
        assert comment.id == "991"
        assert comment.url.endswith("#issuecomment-991")


# ---------------------------------------------------------------------------
# Fixture file
# ---------------------------------------------------------------------------


class TestLoadFixtureSources:
    def test_loads_yaml(self, tmp_path):
        data = {
            "github": {
                "acme/platform#42": {
                    "metadata": {
                        "title": "PROJ-1 Retry",
                        "body": "",
                        "author": "alice",
                        "base_branch": "main",
                        "head_branch": "feature/retry",
                        "url": "https://github.com/acme/platform/pull/42",
                    },
                    "files": [{"path": "a.py", "patch": "+x"}],
                }
            },
            "jira": [{"key": "PROJ-1", "summary": "Retry", "acceptance_criteria": ["max 3"]}],
            "confluence": {
                "by_url": {"https://w.io/wiki/pages/1": {"id": 1, "title": "Design", "url": "https://w.io/wiki/pages/1"}},
                "by_query": {"Retry": [{"id": "2", "title": "Runbook", "url": "https://w.io/wiki/pages/2"}]},
            },
        }
        path = tmp_path / "fixtures.yml"
        path.write_text(yaml.safe_dump(data))

        sources = load_fixture_sources(str(path))

        assert sources.github.fetch_change(REF).files[0].path == "a.py"
        assert sources.jira.fetch_issues(["proj-1"])[0].acceptance_criteria == ["max 3"]
        [linked] = sources.confluence.fetch_by_urls(["https://w.io/wiki/pages/1"])
        assert (linked.id, linked.source) == ("1", "pr-link")
        assert sources.confluence.search("retry", top_k=5)[0].title == "Runbook"

    def test_unknown_pull_request_raises_lookup_error(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        with pytest.raises(LookupError):
            load_fixture_sources(str(path)).github.fetch_change(REF)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_fixture_sources(str(tmp_path / "nope.yml"))

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text(yaml.safe_dump({"jira": [{"summary": "no key"}]}))
        with pytest.raises(ConfigurationError, match="Malformed"):
            load_fixture_sources(str(path))
