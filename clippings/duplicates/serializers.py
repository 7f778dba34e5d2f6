from rest_framework import serializers


class DuplicateWorkflowSerializer(serializers.Serializer):
    scan_id = serializers.CharField(allow_null=True)
    scanning = serializers.BooleanField()
    heading = serializers.CharField(allow_null=True)
    message = serializers.CharField(allow_null=True)
    entries = serializers.SerializerMethodField()

    def get_entries(self, workflow):
        return workflow.entries()


class MergeRequestSerializer(serializers.Serializer):
    keepFirst = serializers.BooleanField()


class MergeOutcomeSerializer(serializers.Serializer):
    candidate_id = serializers.CharField()
    resolved = serializers.BooleanField()
    message = serializers.CharField(allow_blank=True)
    stale = serializers.BooleanField()
