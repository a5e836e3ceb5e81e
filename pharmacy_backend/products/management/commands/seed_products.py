import random
from datetime import date, timedelta

from django.core.management.base import BaseCommand

from products.models import Product
from products.services.inventory import receive_stock


class Command(BaseCommand):
    help = "Seed demo products with FEFO stock batches (plus one legacy counter-only product)"

    def add_arguments(self, parser):
        parser.add_argument("--actor", type=str, default="system:seed")

    def handle(self, *args, **options):
        actor = options["actor"]
        self.stdout.write(self.style.WARNING("Seeding products and stock..."))

        # -------------------------------
        # PRODUCTS (sku, name, price per piece, pieces/sheet, sheets/box)
        # -------------------------------
        products_data = [
            ("AMOX-500", "Amoxicillin 500mg", "12.00", 10, 10),
            ("PARA-500", "Paracetamol 500mg", "3.00", 10, 10),
            ("VITA-C", "Vitamin C 1000mg", "8.00", 4, 25),
            ("FLU-STOP", "Flu Stop Syrup", "150.00", 1, 1),
        ]

        for sku, name, price, per_sheet, per_box in products_data:
            product, created = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    "name": name,
                    "unit_price": price,
                    "pieces_per_sheet": per_sheet,
                    "sheets_per_box": per_box,
                },
            )
            if not created:
                continue

            # 2 batches per product, the earlier expiry is sold first
            for i in range(2):
                receive_stock(
                    product=product,
                    quantity=random.randint(20, 50) * per_sheet,
                    actor_id=actor,
                    expiry_date=date.today() + timedelta(days=180 + i * 60),
                )

        # -------------------------------
        # LEGACY PRODUCT (flat counter, no batches)
        # -------------------------------
        Product.objects.get_or_create(
            sku="ORS-SACHET",
            defaults={"name": "Oral Rehydration Salts", "unit_price": "15.00", "stock_on_hand": 100},
        )

        self.stdout.write(self.style.SUCCESS("Products and stock seeded successfully."))
