import pytest

from conftest import user_for
from skillswap import links


class TestLinks:
    def test_add_and_list(self, app, requester):
        result = links.add_link(requester, " GitHub ", "https://github.com/alice")
        assert result['success']

        assert links.get_user_links(user_for(requester).id) == [
            {'id': result['link_id'], 'platform': "GitHub", 'url': "https://github.com/alice"},
        ]

    def test_one_link_per_platform(self, app, requester, provider):
        assert links.add_link(requester, "GitHub", "https://github.com/alice")['success']
        duplicate = links.add_link(requester, "github", "https://github.com/alice2")
        assert duplicate == {'success': False, 'error': "Link for this platform already exists"}

        assert links.add_link(provider, "GitHub", "https://github.com/bob")['success']
        assert links.add_link(requester, "LinkedIn", "https://linkedin.com/in/alice")['success']

    @pytest.mark.parametrize('url', ["not a url", "github.com/alice", "ftp://files.example.com", "javascript:alert(1)", None])
    def test_invalid_url(self, app, requester, url):
        assert links.add_link(requester, "GitHub", url)['error'] == "Invalid URL format"

    def test_platform_required(self, app, requester):
        assert links.add_link(requester, "  ", "https://example.com")['error'] == "Platform is required"

    def test_update_and_delete_own_only(self, app, requester, provider):
        link_id = links.add_link(requester, "Blog", "https://alice.example.com")['link_id']

        assert links.update_link(provider, link_id, "https://bob.example.com")['error'] == "Link not found"
        assert links.update_link(requester, link_id, "nope")['error'] == "Invalid URL format"
        assert links.update_link(requester, link_id, "https://alice.dev")['success']
        assert links.get_user_links(user_for(requester).id)[0]['url'] == "https://alice.dev"

        assert links.delete_link(provider, link_id)['error'] == "Link not found"
        assert links.delete_link(requester, link_id) == {'success': True}
        assert links.get_user_links(user_for(requester).id) == []

    def test_invalid_session(self, app):
        assert links.add_link("bogus", "GitHub", "https://github.com")['error'] == "Invalid session"
        assert links.delete_link("bogus", 1)['error'] == "Invalid session"
