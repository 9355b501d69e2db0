"""Discovery, diagnosis and classification of suppressed source files."""
