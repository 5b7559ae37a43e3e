"""Tests for the change fingerprint behind live refresh."""

import importlib.metadata
import pathlib
import re
import sys

import live_refresh


class TestFingerprint:

    def test_ignores_other_users_rows(self, fake_db):
        mine = fake_db.seed("enrollments", {"user_id": "s1", "class_id": "c1", "progress": 10})
        other = fake_db.seed("enrollments", {"user_id": "s2", "class_id": "c1", "progress": 10})
        watches = [("enrollments", {"user_id": "s1"})]

        before = live_refresh.fingerprint(watches)
        other["progress"] = 90
        assert live_refresh.fingerprint(watches) == before
        mine["progress"] = 20
        assert live_refresh.fingerprint(watches) != before

    def test_unwatched_columns_do_not_count(self, fake_db):
        tx = fake_db.seed("transactions", {"status": "pending", "amount": 10, "payment_method": "qris"})
        before = live_refresh.fingerprint([("transactions", None)])
        tx["payment_method"] = "transfer"
        assert live_refresh.fingerprint([("transactions", None)]) == before

    def test_new_rows_change_it(self, fake_db):
        watches = [("profiles", None), ("mentor_salaries", None)]
        before = live_refresh.fingerprint(watches)
        fake_db.seed("profiles", {"user_id": "m9", "role": "mentor", "approval_status": "pending"})
        after = live_refresh.fingerprint(watches)
        assert after[0] != before[0]
        assert after[1] == before[1]


class TestModuleNames:

    def test_root_modules_do_not_shadow_the_sdk(self):
        """A root module named like one of the SDK's packages breaks `import supabase`."""
        root = pathlib.Path(__file__).resolve().parent.parent
        local = {path.stem for path in root.glob("*.py")}

        wanted = {"supabase"}
        for requirement in importlib.metadata.requires("supabase") or []:
            wanted.add(re.split(r"[\s;<>=!~\[(]", requirement, maxsplit=1)[0])
        wanted = {name.lower().replace("_", "-") for name in wanted}
        sdk_packages = {
            name for name, dists in importlib.metadata.packages_distributions().items()
            if any(d.lower().replace("_", "-") in wanted for d in dists)
        }
        assert "supabase" in sdk_packages
        assert local & sdk_packages == set()

    def test_supabase_sdk_imports_its_own_realtime_client(self):
        import supabase

        assert "Client" in dir(supabase)
        assert not hasattr(sys.modules.get("realtime"), "live_updates")
