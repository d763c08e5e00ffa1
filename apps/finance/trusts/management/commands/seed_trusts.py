import random
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from faker import Faker

from apps.core.academics.models import Course
from apps.core.fees.models import FeeType
from apps.core.students.models import Student, StudentAcademicYear
from apps.core.users.models import User
from apps.finance.trusts.models import Trust
from apps.finance.trusts.services import apply_inflow, apply_outflow, create_trust


COURSES = (('B.Com', 'BCOM'), ('B.Sc IT', 'BSCIT'), ('BMS', 'BMS'))
FEE_TYPES = ('Tuition', 'Exam', 'Library', 'Development')
YEAR_NAMES = ('FY', 'SY', 'TY')


class Command(BaseCommand):
    help = 'Seeds the database with demo trusts, students and ledger activity.'

    def add_arguments(self, parser):
        parser.add_argument('--students', type=int, default=30)
        parser.add_argument('--trusts', type=int, default=3)
        parser.add_argument('--seed', type=int, default=None)

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write('Seeding trust ledger...')

        fake = Faker('en_IN')
        if options['seed'] is not None:
            Faker.seed(options['seed'])
            random.seed(options['seed'])

        if not User.objects.filter(username='accountant').exists():
            accountant = User.objects.create_user('accountant', password='password', role=User.ROLE_ACCOUNTANT)
            self.stdout.write(self.style.SUCCESS('Successfully created accountant user.'))
        else:
            accountant = User.objects.get(username='accountant')

        courses = []
        for name, code in COURSES:
            course, _ = Course.objects.get_or_create(name=name, defaults={'code': code})
            courses.append(course)

        for name in FEE_TYPES:
            FeeType.objects.get_or_create(name=name)

        years = []
        for _ in range(options['students']):
            student = Student.objects.create(
                fullname=fake.name(),
                roll_number=f"{fake.unique.random_number(digits=6)}",
                email=fake.email(),
            )
            course = random.choice(courses)
            year_index = random.randrange(len(YEAR_NAMES))
            years.append(
                StudentAcademicYear.objects.create(
                    student=student,
                    course=course,
                    academic_year_name=YEAR_NAMES[year_index],
                    academic_year_session='2025-26',
                )
            )
        self.stdout.write(self.style.SUCCESS(f'Successfully created {len(years)} students.'))

        trusts = []
        for _ in range(options['trusts']):
            trust = create_trust(
                name=f"{fake.last_name()} Educational Trust",
                details=fake.address(),
                created_by=accountant,
            )
            apply_inflow(
                trust=trust,
                amount=Decimal(random.randrange(50, 200) * 1000),
                notes='Opening donation',
                created_by=accountant,
            )
            trusts.append(trust)
        self.stdout.write(self.style.SUCCESS(f'Successfully created {len(trusts)} trusts.'))

        assigned = 0
        for year in random.sample(years, k=min(len(years), 10)):
            trust = Trust.objects.get(pk=random.choice(trusts).pk)
            amount = Decimal(random.randrange(5, 25) * 1000)
            if amount > trust.balance:
                continue
            apply_outflow(
                trust=trust,
                student=year.student,
                academic_year=year,
                amount=amount,
                fees_type=random.choice(FEE_TYPES),
                notes='Scholarship',
                created_by=accountant,
            )
            assigned += 1
        self.stdout.write(self.style.SUCCESS(f'Successfully assigned {assigned} trust outflows.'))
