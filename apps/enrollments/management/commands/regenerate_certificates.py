"""Management command to re-render certificate artifacts with the current renderer."""

from django.core.management.base import BaseCommand

from apps.common.exceptions import DependencyFailure
from apps.enrollments.models import Certificate
from apps.enrollments.services import CertificateService


class Command(BaseCommand):
    help = "Regenerate certificate artifacts with the current renderer"

    def add_arguments(self, parser):
        parser.add_argument(
            "--all",
            action="store_true",
            help="Regenerate all certificates, not just those without an artifact",
        )
        parser.add_argument(
            "--certificate-id",
            type=str,
            help="Regenerate a specific certificate by its CERT- id",
        )

    def handle(self, *args, **options):
        if options["certificate_id"]:
            certificate = (
                Certificate.objects.select_related("student", "course__instructor")
                .filter(certificate_id=options["certificate_id"])
                .first()
            )
            if certificate is None:
                self.stdout.write(self.style.ERROR(f"Certificate {options['certificate_id']} not found"))
                return
            self.stdout.write(f"Regenerating certificate {certificate.certificate_id}...")
            url = CertificateService.regenerate_artifact(certificate)
            self.stdout.write(self.style.SUCCESS(f"Generated: {url}"))
            return

        certificates = Certificate.objects.select_related("student", "course__instructor")
        if options["all"]:
            self.stdout.write(f"Regenerating ALL {certificates.count()} certificates...")
        else:
            certificates = certificates.filter(certificate_url="")
            self.stdout.write(f"Regenerating {certificates.count()} certificates without artifacts...")

        success_count = 0
        error_count = 0

        for certificate in certificates:
            try:
                url = CertificateService.regenerate_artifact(certificate)
                self.stdout.write(self.style.SUCCESS(f"[OK] Certificate {certificate.certificate_id}: {url}"))
                success_count += 1
            except DependencyFailure as e:
                self.stdout.write(self.style.ERROR(f"[ERROR] Certificate {certificate.certificate_id}: {e}"))
                error_count += 1

        self.stdout.write("")
        self.stdout.write(self.style.SUCCESS(f"Successfully regenerated: {success_count}"))
        if error_count:
            self.stdout.write(self.style.ERROR(f"Errors: {error_count}"))
