"""
Sponsor-scoped TreeNode records.
"""
import pytest

from models import TreeNode, SIDE_LEFT, SIDE_RIGHT, SIDE_ROOT
from compensation.errors import DataInconsistencyWarning, ValidationError
from compensation.services.tree_store import TreeStore


class TestTreeStore:
    """Tests for node bookkeeping."""

    def test_root_created_once(self, session, makeUser):
        owner = makeUser()
        store = TreeStore(session)

        first = store.ensureRoot(owner.userID)
        second = store.ensureRoot(owner.userID)

        assert first.nodeID == second.nodeID
        assert first.side == SIDE_ROOT
        assert session.query(TreeNode).count() == 1

    def test_add_child_validations(self, session, makeUser):
        owner, a, b = makeUser(), makeUser(), makeUser()
        store = TreeStore(session)
        store.ensureRoot(owner.userID)
        store.addChild(owner.userID, a.userID, owner.userID, SIDE_LEFT)

        with pytest.raises(ValidationError, match="Invalid side"):
            store.addChild(owner.userID, b.userID, owner.userID, "X")
        with pytest.raises(ValidationError, match="is taken"):
            store.addChild(owner.userID, b.userID, owner.userID, SIDE_LEFT)
        with pytest.raises(ValidationError, match="already in tree"):
            store.addChild(owner.userID, a.userID, owner.userID, SIDE_RIGHT)
        with pytest.raises(ValidationError, match="not in tree"):
            store.addChild(owner.userID, b.userID, 999, SIDE_LEFT)

    def test_children_listed_by_parent(self, session, makeUser):
        owner, a, b = makeUser(), makeUser(), makeUser()
        store = TreeStore(session)
        store.ensureRoot(owner.userID)
        store.addChild(owner.userID, a.userID, owner.userID, SIDE_LEFT)
        store.addChild(owner.userID, b.userID, owner.userID, SIDE_RIGHT)

        children = store.getChildren(owner.userID, [owner.userID])

        assert [(n.userID, n.side, n.level) for n in children] == [
            (a.userID, SIDE_LEFT, 1),
            (b.userID, SIDE_RIGHT, 1),
        ]
        assert store.getChildren(owner.userID, []) == []

    def test_ensure_path_mirrors_raw_chain(self, session, makeUser, attach):
        owner, a, b = makeUser(), makeUser(), makeUser(atHotposition=True)
        attach(owner, a, SIDE_RIGHT)
        attach(a, b, SIDE_LEFT)

        node = TreeStore(session).ensurePath(owner.userID, b.userID)
        middle = TreeStore(session).getNode(owner.userID, a.userID)

        assert (middle.parentUser, middle.side, middle.level) == (owner.userID, SIDE_RIGHT, 1)
        assert (node.parentUser, node.side, node.level) == (a.userID, SIDE_LEFT, 2)
        assert node.atHotposition

    def test_ensure_path_outside_subtree(self, session, makeUser):
        owner, stranger = makeUser(), makeUser()

        with pytest.warns(DataInconsistencyWarning):
            assert TreeStore(session).ensurePath(owner.userID, stranger.userID) is None

    def test_set_hotposition(self, session, makeUser):
        owner, a = makeUser(), makeUser()
        store = TreeStore(session)
        store.ensureRoot(owner.userID)
        node = store.addChild(owner.userID, a.userID, owner.userID, SIDE_LEFT, atHotposition=True)

        assert store.setHotposition(owner.userID, a.userID, False) == 1
        session.refresh(node)
        assert not node.atHotposition
