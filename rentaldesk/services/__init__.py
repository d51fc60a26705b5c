"""Database-backed billing operations. Each public function is one transaction."""
