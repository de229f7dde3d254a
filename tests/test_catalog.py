import unittest

from db import InMemoryDocumentStore, SqlDocumentStore
from errors import AuthorizationError, NotFoundError, StorageError, ValidationError
from models import DONATIONS, Category
from schemas import DonationFilter
from services.catalog import DonationCatalog
from storage import InMemoryObjectStore
from support import FakeClock, donation_fields


class DonationCatalogBehaviour:
    def make_store(self):
        raise NotImplementedError

    def setUp(self):
        self.store = self.make_store()
        self.store.create_all()
        self.objects = InMemoryObjectStore()
        self.catalog = DonationCatalog(self.store, self.objects, clock=FakeClock())

    def test_create_sets_owner_and_created_at(self):
        donation = self.catalog.create("alice", donation_fields())
        self.assertEqual(donation.owner_id, "alice")
        self.assertEqual(donation.category, Category.CLOTHING)
        self.assertIsNotNone(donation.created_at)
        self.assertIsNone(donation.updated_at)
        self.assertIsNone(donation.photo_url)
        self.assertEqual(self.catalog.get(donation.id).title, "Winter coat")

    def test_create_requires_every_field(self):
        for name in ("title", "description", "category", "location", "city", "state"):
            with self.subTest(field=name):
                with self.assertRaises(ValidationError):
                    self.catalog.create("alice", donation_fields(**{name: ""}))
        fields = donation_fields()
        del fields["city"]
        with self.assertRaises(ValidationError):
            self.catalog.create("alice", fields)
        self.assertEqual(self.store.collection(DONATIONS).get(), [])

    def test_create_rejects_unknown_category(self):
        with self.assertRaises(ValidationError):
            self.catalog.create("alice", donation_fields(category="spaceships"))

    def test_create_with_photo_stores_url(self):
        donation = self.catalog.create("alice", donation_fields(), photo=b"jpeg-bytes")
        self.assertTrue(donation.photo_url.startswith(self.objects.base_url))
        self.assertEqual(len(self.objects.stored_objects), 1)

    def test_failed_upload_persists_nothing(self):
        self.objects.fail_uploads = True
        with self.assertRaises(StorageError):
            self.catalog.create("alice", donation_fields(), photo=b"jpeg-bytes")
        self.assertEqual(self.store.collection(DONATIONS).get(), [])

    def test_update_by_owner(self):
        donation = self.catalog.create("alice", donation_fields())
        updated = self.catalog.update(donation.id, "alice", {"title": "Warm coat"})
        self.assertEqual(updated.title, "Warm coat")
        self.assertEqual(updated.description, donation.description)
        self.assertIsNotNone(updated.updated_at)
        self.assertEqual(self.catalog.get(donation.id).title, "Warm coat")

    def test_update_by_other_user_is_denied(self):
        donation = self.catalog.create("alice", donation_fields())
        with self.assertRaises(AuthorizationError):
            self.catalog.update(donation.id, "bob", {"title": "Mine now"})
        self.assertEqual(self.catalog.get(donation.id).title, "Winter coat")

    def test_update_missing_donation(self):
        with self.assertRaises(NotFoundError):
            self.catalog.update("nope", "alice", {"title": "x"})

    def test_update_preserves_city_when_omitted(self):
        donation = self.catalog.create("alice", donation_fields(city="Porto"))
        updated = self.catalog.update(donation.id, "alice", {"city": None})
        self.assertEqual(updated.city, "Porto")
        self.assertEqual(self.catalog.get(donation.id).city, "Porto")

        updated = self.catalog.update(donation.id, "alice", {"city": "Lisbon"})
        self.assertEqual(updated.city, "Lisbon")
        self.assertEqual(self.catalog.get(donation.id).state, "PT")

    def test_update_rejects_blank_required_field(self):
        donation = self.catalog.create("alice", donation_fields())
        with self.assertRaises(ValidationError):
            self.catalog.update(donation.id, "alice", {"title": "  "})

    def test_update_photo_replaced_only_when_supplied(self):
        donation = self.catalog.create("alice", donation_fields(), photo=b"first")
        kept = self.catalog.update(donation.id, "alice", {"title": "Coat"})
        self.assertEqual(kept.photo_url, donation.photo_url)

        replaced = self.catalog.update(donation.id, "alice", {}, photo=b"second")
        self.assertNotEqual(replaced.photo_url, donation.photo_url)
        self.assertEqual(self.catalog.get(donation.id).photo_url, replaced.photo_url)

    def test_delete(self):
        donation = self.catalog.create("alice", donation_fields())
        with self.assertRaises(AuthorizationError):
            self.catalog.delete(donation.id, "bob")
        self.catalog.delete(donation.id, "alice")
        with self.assertRaises(NotFoundError):
            self.catalog.get(donation.id)
        with self.assertRaises(NotFoundError):
            self.catalog.delete(donation.id, "alice")

    def test_list_owned_by_newest_first(self):
        first = self.catalog.create("alice", donation_fields(title="first"))
        self.catalog.create("bob", donation_fields(title="other"))
        second = self.catalog.create("alice", donation_fields(title="second"))

        owned = self.catalog.list_owned_by("alice")
        self.assertEqual([d.id for d in owned], [second.id, first.id])

    def test_list_available_excludes_own(self):
        mine = self.catalog.create("alice", donation_fields())
        older = self.catalog.create("bob", donation_fields())
        newer = self.catalog.create("carol", donation_fields())

        available = self.catalog.list_available_to("alice")
        self.assertEqual([d.id for d in available], [newer.id, older.id])
        self.assertNotIn(mine.id, [d.id for d in available])

    def test_filter_by_city_excludes_caller(self):
        porto = self.catalog.create("bob", donation_fields(city="Porto"))
        self.catalog.create("bob", donation_fields(city="Lisbon"))
        own_porto = self.catalog.create("alice", donation_fields(city="Porto"))

        results = self.catalog.filter({"city": "Porto"}, exclude_user_id="alice")
        self.assertEqual([d.id for d in results], [porto.id])

        results = self.catalog.filter({"city": "Porto"}, exclude_user_id="carol")
        self.assertEqual({d.id for d in results}, {porto.id, own_porto.id})

    def test_filter_criteria_are_conjunctive(self):
        match = self.catalog.create("bob", donation_fields(category="food", state="PT"))
        self.catalog.create("bob", donation_fields(category="food", state="ES"))
        self.catalog.create("bob", donation_fields(category="toys", state="PT"))

        results = self.catalog.filter(
            DonationFilter(category="food", state="PT"), exclude_user_id="alice"
        )
        self.assertEqual([d.id for d in results], [match.id])

    def test_filter_sort(self):
        old = self.catalog.create("bob", donation_fields())
        new = self.catalog.create("bob", donation_fields())

        recent = self.catalog.filter({"sort": "recent"}, exclude_user_id="alice")
        self.assertEqual([d.id for d in recent], [new.id, old.id])
        oldest = self.catalog.filter({"sort": "oldest"}, exclude_user_id="alice")
        self.assertEqual([d.id for d in oldest], [old.id, new.id])
        unknown = self.catalog.filter({"sort": "sideways"}, exclude_user_id="alice")
        self.assertEqual({d.id for d in unknown}, {old.id, new.id})


class InMemoryDonationCatalogTests(DonationCatalogBehaviour, unittest.TestCase):
    def make_store(self):
        return InMemoryDocumentStore()


class SqlDonationCatalogTests(DonationCatalogBehaviour, unittest.TestCase):
    def make_store(self):
        return SqlDocumentStore("sqlite+pysqlite:///:memory:")


if __name__ == "__main__":
    unittest.main()
