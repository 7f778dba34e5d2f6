from rest_framework import serializers


class UpdateFormSerializer(serializers.Serializer):
    """Raw update form; presence rules live in UpdateRequest.validate"""
    action = serializers.CharField(required=False, allow_blank=True, default='')
    itemName = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False, default='')
    quantity = serializers.CharField(required=False, allow_blank=True, allow_null=True, default='1')
    unit = serializers.CharField(required=False, allow_blank=True, default='')
    location = serializers.CharField(required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    reason = serializers.CharField(required=False, allow_blank=True, default='')
    minStock = serializers.CharField(required=False, allow_blank=True, allow_null=True, default='')


class UpdateOutcomeSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    message = serializers.CharField()
    form = serializers.DictField(child=serializers.CharField(allow_blank=True))


class BatchFormSerializer(serializers.Serializer):
    batchData = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False, default='')


class BatchLineResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    line = serializers.CharField(allow_null=True)
    message = serializers.CharField()
    display_text = serializers.CharField()


class BatchImportResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    summary = serializers.CharField()
    lines = BatchLineResultSerializer(many=True)
    clear_buffer = serializers.BooleanField()
