from datetime import time, timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from core.models import Location
from donations.models import Category, Size
from donations.services import associate_size, create_donated_item
from inventory.models import Item
from inventory.services import create_addition, create_checkout, create_item, provision_location_stock_rows
from volunteers.models import VolunteerSession
from volunteers.services import calculate_hours

DEMO_ITEMS = [
    {"name": "Diapers", "has_sizes": True, "sizes": ["Newborn", "Size 1", "Size 2", "Size 3"], "unit_type": "pack"},
    {"name": "Baby Wipes", "has_sizes": False, "unit_type": "pack"},
    {"name": "Toddler Shirts", "has_sizes": True, "sizes": ["2T", "3T", "4T"], "unit_type": "each"},
    {"name": "Toothbrush Kit", "has_sizes": False, "unit_type": "kit", "min_stock_level": 10},
]


class Command(BaseCommand):
    help = "Seed demo locations, items, movements and volunteer hours for local development."

    @transaction.atomic
    def handle(self, *args, **options):
        today = timezone.localdate()

        mckinney, _ = Location.objects.get_or_create(
            name="McKinney",
            defaults={"city": "McKinney", "state": "TX", "zip_code": "75069", "address": "100 Main St"},
        )
        plano, _ = Location.objects.get_or_create(
            name="Plano",
            defaults={"city": "Plano", "state": "TX", "zip_code": "75074", "address": "200 Park Blvd"},
        )
        for location in (mckinney, plano):
            provision_location_stock_rows(location)

        items = {}
        for entry in DEMO_ITEMS:
            fields = dict(entry)
            sizes = fields.pop("sizes", None)
            item = Item.objects.filter(name=fields["name"]).first()
            if item is None:
                item = create_item(sizes=sizes, **fields)
            items[item.name] = item

        if not mckinney.additions.exists():
            wipes = items["Baby Wipes"].sizes.get(location=mckinney)
            size_two = items["Diapers"].sizes.get(location=mckinney, size_label="Size 2")
            create_addition(
                {
                    "location": mckinney,
                    "addition_date": today - timedelta(days=7),
                    "volunteer_name": "Demo Volunteer",
                    "source": "Community drive",
                },
                [
                    {"item": wipes.item, "size": wipes, "quantity": 40},
                    {"item": size_two.item, "size": size_two, "quantity": 25},
                ],
            )
            create_checkout(
                {
                    "location": mckinney,
                    "checkout_date": today - timedelta(days=2),
                    "worker_first_name": "Casey",
                    "worker_last_name": "Worker",
                    "department": "CPS",
                    "case_number": "DEMO-0001",
                    "allegations": ["Neglectful Supervision"],
                    "parent_guardian_first_name": "Pat",
                    "parent_guardian_last_name": "Guardian",
                    "zip_code": "75069",
                    "number_of_children": 2,
                },
                [
                    {"item": wipes.item, "size": wipes, "quantity": 3},
                    {"item": size_two.item, "size": size_two, "quantity": 2},
                ],
            )

        if not VolunteerSession.objects.exists():
            VolunteerSession.objects.create(
                location=plano,
                volunteer_name="Demo Volunteer",
                session_date=today - timedelta(days=1),
                start_time=time(9, 0),
                end_time=time(12, 30),
                hours_worked=calculate_hours(time(9, 0), time(12, 30)),
                tasks_performed="Sorted donations",
            )

        if not Category.objects.exists():
            shirts = Category.objects.create(name="Shirts", description="Individually tracked shirts")
            small = Size.objects.create(name="S")
            associate_size(shirts, small)
            create_donated_item(category=shirts, size=small, location=plano, donor_info="Demo donor")

        self.stdout.write(self.style.SUCCESS("Demo data ready."))
        self.stdout.write(f"Locations: {Location.objects.count()}  Items: {Item.objects.count()}")
