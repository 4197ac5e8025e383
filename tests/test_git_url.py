import pytest

from pack2tekton.services.git_module import GitURLError, parse_git_url


@pytest.mark.parametrize(
    "url, host, org, name",
    [
        ("https://github.com/acme/petclinic.git", "github.com", "acme", "petclinic"),
        ("https://github.com/acme/petclinic", "github.com", "acme", "petclinic"),
        ("git@github.com:acme/petclinic.git", "github.com", "acme", "petclinic"),
        ("http://gitea.local:3000/acme/petclinic.git", "gitea.local:3000", "acme", "petclinic"),
        ("https://bitbucket.example.com/scm/proj/repo.git", "bitbucket.example.com", "proj", "repo"),
        ("https://bitbucket.example.com/projects/PROJ/repos/repo/browse", "bitbucket.example.com", "PROJ", "repo"),
    ],
)
def test_parse_git_url(url, host, org, name):
    info = parse_git_url(url)

    assert info.host == host
    assert info.organisation == org
    assert info.name == name
    assert info.url == url


def test_https_url():
    info = parse_git_url("git@github.com:acme/petclinic.git")

    assert info.https_url() == "https://github.com/acme/petclinic"
    assert info.http_clone_url() == "https://github.com/acme/petclinic.git"


@pytest.mark.parametrize("url", ["", "not a url", "https://github.com/only-org"])
def test_invalid_url(url):
    with pytest.raises(GitURLError):
        parse_git_url(url)
