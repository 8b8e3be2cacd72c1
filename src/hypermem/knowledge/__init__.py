"""Knowledge module for concept taxonomy, consolidation and progress tracking."""

from .taxonomy import categorize_domain, category_score, consolidation_group

__all__ = ['categorize_domain', 'category_score', 'consolidation_group']
