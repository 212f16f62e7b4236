"""Raw upstream payload schemas, validated before transformation."""
