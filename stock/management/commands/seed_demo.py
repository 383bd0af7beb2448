"""
Management command to populate the database with demo data.
"""
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from stock.models import Batch, Brand, Document, MaterialType, Physician, User, Vendor
from stock.services import inventory, usage
from stock.services.backups import RESTORE_CLEAR_ORDER
from stock.services.users import ensure_default_permissions


class Command(BaseCommand):
    help = 'Populate database with demo master data, stock and usage'

    def add_arguments(self, parser):
        parser.add_argument('--password', default='admin123', help='Password for the demo admin user.')
        parser.add_argument('--reset', action='store_true', help='Delete existing stock data first.')

    def handle(self, *args, **options):
        with transaction.atomic():
            if options['reset']:
                for model in RESTORE_CLEAR_ORDER:
                    model.objects.all().delete()
                self.stdout.write('Cleared existing stock data.')

            admin = self.create_admin(options['password'])
            types = self.create_material_types()
            brands = self.create_brands()
            vendors = self.create_vendors()
            physicians = self.create_physicians()
            documents = self.create_documents()
            batches = self.create_stock(admin, types, brands, vendors, documents)
            self.create_usage(admin, batches, physicians)

        self.stdout.write(self.style.SUCCESS('Demo data created.'))

    def create_admin(self, password):
        admin, created = User.objects.get_or_create(
            username='admin',
            defaults={'email': 'admin@example.com', 'role': 'Admin', 'is_staff': True, 'is_superuser': True},
        )
        if created:
            admin.set_password(password)
            admin.save(update_fields=['password'])
        admin.permissions.add(*ensure_default_permissions())
        self.stdout.write(f'Admin user: {admin.username} ({"created" if created else "existing"})')
        return admin

    def create_material_types(self):
        names = ['Stent', 'Balloon', 'Guidewire', 'Microcatheter']
        return {n: MaterialType.objects.get_or_create(name=n)[0] for n in names}

    def create_brands(self):
        names = ['Medtronic', 'Boston Scientific', 'Terumo', 'Merit Medical']
        return {n: Brand.objects.get_or_create(name=n)[0] for n in names}

    def create_vendors(self):
        return [Vendor.objects.get_or_create(name=f'Vendor {c}')[0] for c in 'ABCDEFG']

    def create_physicians(self):
        data = [
            ('Dr. Asha Rao', 'Interventional Cardiology'),
            ('Dr. Vikram Shah', 'Neuroradiology'),
            ('Dr. Meera Iyer', 'Vascular Surgery'),
        ]
        return [
            Physician.objects.get_or_create(name=name, defaults={'specialization': spec, 'department': 'Cath Lab'})[0]
            for name, spec in data
        ]

    def create_documents(self):
        now = timezone.now()
        data = [
            ('Invoice', 'INV-001', 'Vendor A', 40),
            ('Delivery Challan', 'DC-001', 'Vendor B', 30),
            ('Purchase Order', 'PO-001', 'Vendor C', 50),
        ]
        return [
            Document.objects.get_or_create(
                document_number=number, defaults={'type': kind, 'vendor': vendor, 'date': now - timedelta(days=age)},
            )[0]
            for kind, number, vendor, age in data
        ]

    def create_stock(self, admin, types, brands, vendors, documents):
        now = timezone.now()
        plan = [
            # name, size, brand, type, [(qty, purchase type, vendor idx, days to expiry, lot, doc idx)]
            ('Drug Eluting Stent', '3.0 x 18mm', 'Medtronic', 'Stent', [
                (10, Batch.PURCHASE_PURCHASED, 0, 400, 'L123', 0),
                (3, Batch.PURCHASE_ADVANCE, 1, 20, 'L124', 1),
            ]),
            ('Balloon Catheter', '2.5 x 15mm', 'Boston Scientific', 'Balloon', [
                (15, Batch.PURCHASE_PURCHASED, 2, 200, 'B210', 2),
                (4, Batch.PURCHASE_ADVANCE, 3, 5, 'B211', None),
            ]),
            ('Hydrophilic Guidewire', '0.014"', 'Terumo', 'Guidewire', [
                (25, Batch.PURCHASE_PURCHASED, 4, 500, 'G900', None),
            ]),
            ('Microcatheter', '2.4F', 'Merit Medical', 'Microcatheter', [
                (2, Batch.PURCHASE_ADVANCE, 5, 90, 'M055', None),
            ]),
        ]
        batches = []
        for name, size, brand, mtype, batch_rows in plan:
            material = inventory.create_material(
                {'name': name, 'size': size, 'brand': brands[brand], 'material_type': types[mtype]}, admin,
            )
            for qty, purchase_type, vendor_idx, expiry_days, lot, doc_idx in batch_rows:
                batches.append(inventory.create_batch(material, {
                    'quantity': qty,
                    'purchase_type': purchase_type,
                    'vendor': vendors[vendor_idx],
                    'expiration_date': now + timedelta(days=expiry_days),
                    'lot_number': lot,
                    'storage_location': f'Shelf {len(batches) + 1}',
                    'document_ids': [documents[doc_idx].id] if doc_idx is not None else [],
                }, admin))
        self.stdout.write(f'Created {len(plan)} materials with {len(batches)} batches')
        return batches

    def create_usage(self, admin, batches, physicians):
        now = timezone.now()
        rows = [
            ('Ravi Kumar', 'P-1001', 'Coronary Angioplasty', 3, 0, 1),
            ('Ravi Kumar', 'P-1001', 'Coronary Angioplasty', 3, 2, 1),
            ('Sunita Devi', 'P-1002', 'Cerebral Angiography', 35, 4, 2),
            ('Anil Mehta', 'P-1003', 'Peripheral Angioplasty', 70, 3, 1),
        ]
        for patient_name, patient_id, procedure, days_ago, batch_idx, qty in rows:
            usage.record_usage({
                'patient_name': patient_name,
                'patient_id': patient_id,
                'procedure_name': procedure,
                'procedure_date': now - timedelta(days=days_ago),
                'physician': physicians[batch_idx % len(physicians)].name,
                'batch_id': batches[batch_idx].id,
                'quantity': qty,
            }, admin)
        self.stdout.write(f'Recorded {len(rows)} usage records')
