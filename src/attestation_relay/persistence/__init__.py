"""Archive of terminal submission records."""

from attestation_relay.persistence.submission_archive import SubmissionArchive

__all__ = ["SubmissionArchive"]
